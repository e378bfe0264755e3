"""Simple concurrency demo that fires /search requests concurrently against the ASGI app.
This runs in-process and doesn't require the server to be started separately.
Run: python sample_data.py && python concurrency_demo.py
"""
import asyncio
from datetime import datetime, timedelta, timezone
from main import app
import httpx


async def run():
    departure = (datetime.now(timezone.utc) + timedelta(days=1)).replace(second=0, microsecond=0)
    body = {
        "startLat": 12.9352, "startLng": 77.6245,
        "endLat": 13.0358, "endLng": 77.6431,
        "departureTime": departure.isoformat(),
        "timeWindowMinutes": 60,
    }
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        tasks = [client.post("/search", json=body) for _ in range(10)]
        res = await asyncio.gather(*tasks)
        for r in res:
            print(r.status_code, len(r.json()))


if __name__ == "__main__":
    asyncio.run(run())
