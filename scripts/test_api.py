"""
Quick API smoke test against a running service
"""

import httpx
import asyncio


async def test_api():
    """Exercise the Factify endpoints"""

    base_url = "http://localhost:8001"

    print("Testing Factify API...")
    print("=" * 50)

    async with httpx.AsyncClient(timeout=60.0) as client:
        print("\n1. Health check...")
        response = await client.get(f"{base_url}/health")
        print(f"Status: {response.status_code}")
        for provider_id, info in response.json().get("providers", {}).items():
            print(f"  {provider_id}: remaining={info.get('remaining')}")

        print("\n2. Metrics...")
        response = await client.get(f"{base_url}/metrics")
        print(f"Status: {response.status_code}")
        print(f"Response: {response.json()}")

        print("\n3. Evaluate text...")
        response = await client.post(
            f"{base_url}/evaluate",
            json={
                "text": "They don't want you to know this secret miracle cure, 100% proven, act now!",
                "source": "script",
            }
        )
        print(f"Status: {response.status_code}")
        data = response.json()
        verdict = data.get("verdict", {})
        print(f"Verdict: {verdict.get('label')} ({verdict.get('score')}/100, confidence {verdict.get('confidence')}%)")
        for line in verdict.get("reasoning", []):
            print(f"  - {line}")
        for outcome in data.get("providers", []):
            print(f"  {outcome['provider_id']}: {outcome['status']}{' (cached)' if outcome['cached'] else ''}")

        print("\n4. History...")
        response = await client.get(f"{base_url}/history", params={"limit": 5})
        print(f"Entries: {response.json().get('count')}")

    print("\n" + "=" * 50)
    print("Test completed")


if __name__ == "__main__":
    asyncio.run(test_api())
