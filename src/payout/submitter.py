import logging

from payout.errors import SubmissionError
from payout.logging_config import EventSink
from payout.models import AssembledTransaction
from payout.rpc import LedgerClient


async def submit(client: LedgerClient, assembled: AssembledTransaction, events: EventSink) -> str:
    """Send the signed transaction once and return its signature.

    Simulation logs from a rejected send are the only way to see which
    instruction failed, so they are emitted before the error propagates.
    A rejected send is reported as is and never retried.
    """
    events.emit("sending_transaction", blockhash=assembled.blockhash)
    try:
        signature = await client.send_transaction(assembled.transaction)
    except SubmissionError as e:
        events.emit("submission_failed", level=logging.ERROR, error=str(e).splitlines()[0], logs=len(e.logs))
        for line in e.logs:
            events.emit("transaction_log", level=logging.ERROR, line=line)
        raise

    if not signature:
        raise SubmissionError("Transaction failed to send. Please check the logs for more details.")
    events.emit("transaction_sent", signature=signature)
    return signature
