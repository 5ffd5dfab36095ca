"""
Book a blood test appointment by phone and poll until the call ends.

Requires VAPI_API_KEY and VAPI_PHONE_NUMBER_ID in the environment or .env.
In production, rely on the end-of-call-report webhook instead of polling.
"""

import asyncio
import json

from voicecall.calls.service import CallOrchestrator
from voicecall.shared.exceptions import NotAvailableError
from voicecall.shared.logging import setup_logging

POLL_INTERVAL_SECONDS = 10
MAX_ATTEMPTS = 60  # 10 minutes


async def book_blood_test() -> None:
    setup_logging()
    orchestrator = CallOrchestrator()
    await orchestrator.initialize()

    try:
        result = await orchestrator.make_call(
            phone_number="+81-90-1234-5678",  # replace with the clinic's number
            template="clinic-blood-test",
            context={
                "patientName": "山田太郎",
                "clinicName": "宮下クリニック",
                "preferredDate": "2026年2月15日",
                "purpose": "血液検査",
            },
            max_duration=600,
        )
        print(f"Call ID: {result['callId']}  Assistant ID: {result['assistantId']}")

        for _ in range(MAX_ATTEMPTS):
            await asyncio.sleep(POLL_INTERVAL_SECONDS)

            status = await orchestrator.get_call_status(result["callId"])
            print(f"Status: {status['status']}")
            if status["status"] != "ended":
                continue

            print(f"Duration: {status['duration']}s  Cost: ${status['cost']}  Reason: {status['endedReason']}")

            try:
                transcript = await orchestrator.get_transcript(result["callId"])
                print(transcript["transcript"])
            except NotAvailableError:
                print("Transcript not available yet")

            try:
                data = await orchestrator.get_structured_data(result["callId"])
                print(json.dumps(data["structuredData"], ensure_ascii=False, indent=2))
            except NotAvailableError:
                print("Structured data not available")
            break
        else:
            print("Call did not complete within expected time")
    finally:
        await orchestrator.shutdown()


if __name__ == "__main__":
    asyncio.run(book_blood_test())
