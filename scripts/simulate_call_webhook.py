"""
Simulate an MCUBE end-of-call callback against a running server.

Usage:
    python scripts/simulate_call_webhook.py
    python scripts/simulate_call_webhook.py --dialstatus NoAnswer
    python scripts/simulate_call_webhook.py --callto "+91 98765 00001" --emp-phone 9810000003 --replay
    python scripts/simulate_call_webhook.py --form
"""
import argparse
import asyncio
import logging
import uuid

import httpx

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:8000"


async def post_callback(payload: dict, as_form: bool) -> httpx.Response:
    async with httpx.AsyncClient(timeout=30) as client:
        if as_form:
            resp = await client.post(f"{BASE_URL}/api/v1/webhook/mcube", data=payload)
        else:
            resp = await client.post(f"{BASE_URL}/api/v1/webhook/mcube", json=payload)
        logger.info("MCUBE webhook response: %s %s", resp.status_code, resp.text)
        return resp


async def main():
    parser = argparse.ArgumentParser(description="Simulate an MCUBE call callback")
    parser.add_argument("--callto", default="919876500001")
    parser.add_argument("--emp-phone", default="919810000003")
    parser.add_argument("--dialstatus", default="ANSWER", choices=["ANSWER", "Busy", "NoAnswer", "CANCEL"])
    parser.add_argument("--answeredtime", default="00:02:17")
    parser.add_argument("--callid", default=None)
    parser.add_argument("--replay", action="store_true", help="Send the same callback twice")
    parser.add_argument("--form", action="store_true", help="Send form-encoded instead of JSON")
    args = parser.parse_args()

    callid = args.callid or uuid.uuid4().hex[:12]
    payload = {
        "callto": args.callto,
        "emp_phone": args.emp_phone,
        "dialstatus": args.dialstatus,
        "answeredtime": args.answeredtime if args.dialstatus == "ANSWER" else "00:00:00",
        "filename": f"https://recordings.mcube.example/{callid}.wav",
        "callid": callid,
    }

    logger.info("Simulating %s call %s → %s (callid=%s)", args.dialstatus, args.emp_phone, args.callto, callid)
    await post_callback(payload, args.form)
    if args.replay:
        logger.info("Replaying callback %s", callid)
        await post_callback(payload, args.form)


if __name__ == "__main__":
    asyncio.run(main())
