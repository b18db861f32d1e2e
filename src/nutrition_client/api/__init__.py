from nutrition_client.api.client import NutritionApiClient
from nutrition_client.api.errors import (
    ApiAuthError,
    ApiError,
    ApiNetworkError,
    ApiRequestError,
    ApiServerError,
    ApiTimeout,
)
from nutrition_client.api.schemas import ApiEnvelope

__all__ = [
    "ApiAuthError",
    "ApiEnvelope",
    "ApiError",
    "ApiNetworkError",
    "ApiRequestError",
    "ApiServerError",
    "ApiTimeout",
    "NutritionApiClient",
]
