"""
Homepage SMS flow walkthrough

Drives a running API through start -> send-sms -> verify-sms and prints
every response. With Twilio unconfigured, the code 123456 is accepted.

Usage: python scripts/try_homepage_flow.py [BASE_URL]
"""

import json
import sys

import httpx

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"


def print_section(title):
    print("\n" + "=" * 80)
    print(f"  {title}")
    print("=" * 80)


def print_response(response: httpx.Response):
    print(f"HTTP {response.status_code}")
    print(json.dumps(response.json(), indent=2, ensure_ascii=False))


def main():
    print("\n🏠 Estimation Gironde - homepage verification walkthrough\n")

    with httpx.Client(base_url=BASE_URL, timeout=30) as client:
        # STEP 1: start a session with the estimation form data
        print_section("STEP 1: Start verification")

        phone = input("Mobile number (Enter for 06 12 34 56 78): ").strip() or "06 12 34 56 78"
        response = client.post("/api/homepage-verification/start", json={
            "phone_number": phone,
            "first_name": "Camille",
            "property_data": {
                "property_type": "apartment",
                "city": "Bordeaux",
                "postal_code": "33000",
                "surface": 65,
                "rooms": 3
            }
        })
        print_response(response)
        if response.status_code != 200:
            return

        session_id = response.json()["session_id"]

        # STEP 2: send the code
        print_section("STEP 2: Send SMS")

        response = client.post("/api/homepage-verification/send-sms", json={"session_id": session_id})
        print_response(response)
        if response.status_code != 200:
            return

        # STEP 3: verify, creating the lead
        print_section("STEP 3: Verify code")

        code = input("Code received (Enter for 123456): ").strip() or "123456"
        response = client.post("/api/homepage-verification/verify-sms", json={
            "session_id": session_id,
            "code": code
        })
        print_response(response)

        print_section("Session status")
        print_response(client.get(f"/api/homepage-verification/{session_id}"))


if __name__ == "__main__":
    main()
