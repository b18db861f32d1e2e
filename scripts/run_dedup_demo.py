import argparse
import asyncio
import json
import logging
from dataclasses import replace

from nutrition_client.config import CoordinatorSettings, build_coordinator, get_settings
from nutrition_client.coordination import ExecuteOptions, RequestThrottled, create_request_key


def build_demo_settings(args) -> CoordinatorSettings:
    return replace(get_settings(), throttle_window_s=args.throttle_ms / 1000.0)


async def main():
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug_logging else getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
    )
    parser = argparse.ArgumentParser(description="Show request dedup + throttle on a fake meals endpoint.")
    parser.add_argument("--callers", type=int, default=3, help="Concurrent callers for the same key")
    parser.add_argument("--latency-ms", type=int, default=500, help="Fake endpoint latency")
    parser.add_argument("--throttle-ms", type=int, default=2000, help="Throttle window")
    args = parser.parse_args()

    coordinator = build_coordinator(build_demo_settings(args))
    calls = {"n": 0}

    async def fetch_meals():
        calls["n"] += 1
        await asyncio.sleep(args.latency_ms / 1000.0)
        return [{"id": 1}]

    key = create_request_key("GET", "/meals")
    results = await asyncio.gather(*(coordinator.execute(key, fetch_meals) for _ in range(args.callers)))

    throttled = False
    try:
        await coordinator.execute(key, fetch_meals, ExecuteOptions(throttle=True))
    except RequestThrottled as e:
        throttled = True
        retry_after_s = round(e.retry_after_s, 3)
    else:
        retry_after_s = None

    print(
        json.dumps(
            {
                "key": key,
                "results": results,
                "underlying_calls": calls["n"],
                "second_round_throttled": throttled,
                "retry_after_s": retry_after_s,
                "status": {"pending_count": coordinator.status().pending_count},
            },
            ensure_ascii=False,
            indent=2,
        )
    )


if __name__ == "__main__":
    asyncio.run(main())
