"""Raw SMS source - inbox CSV export with a built-in sample fallback"""

import os
from pathlib import Path
from typing import List, Optional
import pandas as pd
from src.constants import DEFAULT_INBOX_LIMIT
from src.utils.logging import get_logger

logger = get_logger(__name__)

# Example bank notifications for demos and tests
SAMPLE_MESSAGES = [
    "ICICI Bank Credit Card XX7004 debited for INR 624.00 on 26-Aug-25 for Satguru. To dispute call 18001080/SMS BLOCK 7004 to 9215676766",
    "HDFC Bank: Your account XX1234 is debited for INR 150.00 on 25-Aug-25 for Zomato. Available balance: INR 25000.00",
    "BOB UPI: Payment of INR 350.00 to BigBasket on 24-Aug-25. UPI Ref: 712345678904",
    "AXIS Bank UPI: Payment of INR 45.00 to Uber on 23-Aug-25. UPI Ref: 412345678901",
    "KOTAK Bank: Your account debited for INR 899.00 on 22-Aug-25 for Amazon. Available balance: INR 15000.00",
    "PNB Credit Card XX9012 debited for INR 1200.00 on 21-Aug-25 for PVR Cinemas. To dispute call 1800118001",
    "ICICI Bank UPI: Payment of INR 67.50 to Swiggy on 20-Aug-25. UPI Ref: 512345678902",
    "HDFC Bank: Your account XX1234 is debited for INR 3500.00 on 19-Aug-25 for Flipkart. Available balance: INR 21500.00",
    "SBI: UPI payment of INR 25.00 to Metro Card on 18-Aug-25. Balance: INR 8000.00",
    "AXIS Bank Credit Card XX3456 debited for INR 299.00 on 17-Aug-25 for Netflix. Minimum due: INR 5000.00",
    "KOTAK Bank: Your account debited for INR 1800.00 on 16-Aug-25 for Electricity Bill. Available balance: INR 13200.00",
    "ICICI Bank: UPI payment of INR 180.00 to PhonePe on 15-Aug-25 for Mobile Recharge. UPI Ref: 612345678903",
    "HDFC Bank Credit Card XX7890 debited for INR 750.00 on 14-Aug-25 for McDonald's. To dispute call 18002022",
]


def read_inbox_export(export_path: str, limit: int = DEFAULT_INBOX_LIMIT) -> List[str]:
    """
    Read message bodies from an inbox CSV export.

    Args:
        export_path: CSV with a 'body' column and an optional 'date' column
        limit: Maximum number of messages to return

    Returns:
        Up to `limit` bodies, newest first when dates are present
    """
    df = pd.read_csv(export_path)
    if 'body' not in df.columns:
        logger.warning(f"No 'body' column in {export_path}")
        return []

    if 'date' in df.columns:
        df['date'] = pd.to_datetime(df['date'], errors='coerce')
        df = df.sort_values('date', ascending=False, na_position='last')

    bodies = df['body'].dropna().astype(str)
    bodies = bodies[bodies.str.strip() != ""]
    return bodies.head(limit).tolist()


def load_messages(export_path: Optional[str] = None, limit: int = DEFAULT_INBOX_LIMIT) -> List[str]:
    """
    Load the corpus for a batch run.

    Falls back to SAMPLE_MESSAGES when no export is configured, the file is
    missing or unreadable, or it holds no messages.
    """
    export_path = export_path or os.getenv("SMS_EXPORT_PATH")
    if not export_path:
        logger.info("No inbox export configured, using sample messages")
        return list(SAMPLE_MESSAGES)

    if not Path(export_path).exists():
        logger.warning(f"Inbox export not found: {export_path}, using sample messages")
        return list(SAMPLE_MESSAGES)

    try:
        messages = read_inbox_export(export_path, limit)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        logger.error(f"Error reading inbox export {export_path}: {e}")
        messages = []

    if not messages:
        logger.warning("Inbox export is empty, using sample messages")
        return list(SAMPLE_MESSAGES)

    logger.info(f"Loaded {len(messages)} messages from {export_path}")
    return messages
