import asyncio
import uuid

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential

# Configuration
BASE_URL = "http://localhost:8000"
HEADERS = {"X-User-Id": f"sim-{uuid.uuid4()}", "X-User-Email": "sim@example.com"}

ANSWERS = {
    1: "i was standing in the parking lot of the hospital when the phone rang",
    2: "at that time in my life i was working nights and barely sleeping",
    3: "the nurse said my father had woken up and was asking for me",
    4: "my chest felt tight and my hands would not stop shaking",
    5: "i remember thinking i had not called him in three months",
    6: "so i sat in the car for ten minutes before i could walk in",
    7: "which led to the longest conversation we ever had",
    8: "i realized that i had been waiting for him to go first",
    9: "it cost me years i could have had with him",
    10: "but it gave me a reason to stop pretending i was fine",
    11: "i would say call him tonight, not next week",
    12: "if you are waiting for the right moment, it is probably this one",
}


@retry(stop=stop_after_attempt(5), wait=wait_exponential(multiplier=1, max=8))
async def wait_for_server(client: httpx.AsyncClient):
    response = await client.options("/stories")
    response.raise_for_status()


async def simulate_story():
    print(f"Connecting to {BASE_URL}...")
    async with httpx.AsyncClient(base_url=BASE_URL, headers=HEADERS, timeout=60) as client:
        try:
            await wait_for_server(client)
            print("Connected!")

            # --- Step 1: Start a story and pass the gate ---
            print("\n[Client] Advancing step 1...")
            response = await client.post("/stories/advance", json={"bucket": "business", "content": {"1": ANSWERS[1]}})
            response.raise_for_status()
            data = response.json()
            print(f"[Server] {data['outcome']}")
            story_id = data["story"]["id"]

            if data["outcome"] == "blocked_by_gate":
                print(f"[Gate] {data.get('verdict', {}).get('softNudge')}")
                data = (await client.post(f"/stories/{story_id}/advance", json={"override": True})).json()
                print(f"[Server] override -> {data['outcome']}")

            # --- Steps 2-11 ---
            for step in range(2, 12):
                response = await client.post(f"/stories/{story_id}/advance", json={"content": {str(step): ANSWERS[step]}})
                response.raise_for_status()
                data = response.json()
                print(f"[Step {step}] {data['outcome']}")
                for warning in data["warnings"]:
                    print(f"    [Coach] {warning['softNudge']}")

            # --- Step 12: Lock ---
            print("\n[Client] Locking...")
            response = await client.post(f"/stories/{story_id}/lock", json={"content": {"12": ANSWERS[12]}})
            if response.status_code != 200:
                print(f"[Server Error] {response.json().get('error')}")
                return
            story = response.json()["story"]
            print(f"[Scores] {story['scores']}")
            print(f"[Summary] {story['summary']}")

            # --- Published review ---
            published = " ".join(ANSWERS[n] for n in sorted(ANSWERS)) + " Follow me for more stories like this!"
            response = await client.post(f"/stories/{story_id}/reviews", json={"publishedText": published})
            if response.status_code == 200:
                review = response.json()["review"]
                print(f"[Fidelity] {review['fidelityScore']} | CTA: {review['ctaExamples']}")
            else:
                print(f"[Server Error] {response.json().get('error')}")

        except Exception as e:
            print(f"Simulation failed: {e}")


if __name__ == "__main__":
    asyncio.run(simulate_story())
