"""
Example: Basic Payment Verification

Opens a payment intent, then polls its status until the payer's transfer
shows up on the ledger or the intent expires.
"""

import asyncio
import sys

from dotenv import load_dotenv
load_dotenv()

from paywatch import IntentStatus, PaymentVerifier, PaywatchError


async def main():
    """
    Basic example showing:
    1. Initialize the verifier (reads PAYWATCH_* from the environment)
    2. Create a payment intent for 0.01 SOL
    3. Poll its status
    """
    print("=== paywatch Basic Example ===\n")

    async with PaymentVerifier() as verifier:
        print(f"Cluster: {verifier.config.cluster.value}")
        print(f"Sources: {[s.name for s in verifier.matcher.sources]}")

        receipt = await verifier.create_payment_intent_sol("demo-user", "0.01")
        print(f"\nIntent {receipt.id}")
        print(f"   Pay {receipt.to_dict()['expected_amount_sol']} SOL to {receipt.treasury_address}")
        print(f"   before {receipt.expires_at.isoformat()}")

        while True:
            await asyncio.sleep(15)
            try:
                status = await verifier.get_payment_status(receipt.id)
            except PaywatchError as e:
                print(f"Status check failed: {e}")
                return 1

            print(f"   status: {status.status.value}")
            if status.confirmed:
                print(f"Paid by {status.matched_transaction_ref}")
                return 0
            if status.status == IntentStatus.EXPIRED:
                print("Intent expired unpaid")
                return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
