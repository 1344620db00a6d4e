"""
Script to print the contact inbox, newest first, with reply details.
"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from constants import CONTACT_STATUSES
from database import contacts_collection


async def list_contact_messages():
    """Print per-status counts, then one block per message."""
    print("=" * 100)
    print("CONTACT INBOX")
    print("=" * 100)

    messages = await contacts_collection.find({}).sort("created_at", -1).to_list(length=None)
    print(f"\nTotal messages: {len(messages)}")

    for status in CONTACT_STATUSES:
        count = sum(1 for m in messages if m.get("status") == status)
        print(f"  {status:<8} {count}")

    for idx, message in enumerate(messages, 1):
        created = message.get("created_at")
        created_display = created.strftime("%Y-%m-%d %H:%M") if created else "N/A"
        print(f"\n{idx}. [{message.get('status', 'N/A')}] {message.get('subject', '(no subject)')}")
        print(f"   From: {message.get('name', 'N/A')} <{message.get('email', 'N/A')}>")
        print(f"   Received: {created_display}  ID: {message.get('_id')}")

        reply = message.get("admin_reply")
        if reply:
            replied_at = reply.get("replied_at")
            replied_display = replied_at.strftime("%Y-%m-%d %H:%M") if replied_at else "N/A"
            print(f"   Replied: {replied_display} by {reply.get('replied_by', 'N/A')}")

    print("\n" + "=" * 100)


if __name__ == "__main__":
    asyncio.run(list_contact_messages())
