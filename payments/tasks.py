from celery import shared_task
from core.api_client import ApiClient, ApiError
from .services import TransactionService, DiscountService, DiscountError
import logging

logger = logging.getLogger(__name__)

@shared_task
def record_transaction_task(payload, token=None, discount_code=None):
    """
    Posts the transaction record for a completed checkout payment, then
    records the discount usage against the contract for signed-in buyers.
    The payment is already settled, so a failure here is only logged.
    """
    metadata = payload.get('metadata', {})
    contract_id = metadata.get('contractId')
    client = ApiClient(token=token)

    if discount_code and client.is_authenticated:
        try:
            DiscountService(client).apply_discount(
                discount_code, metadata.get('originalAmount', 0), order_id=contract_id,
            )
        except DiscountError as e:
            logger.warning(f"Discount usage for {discount_code} on contract {contract_id} not recorded: {e.message}")

    try:
        result = TransactionService(client).create_transaction(payload)
    except ApiError as e:
        logger.error(f"Transaction record for contract {contract_id} failed: {e.message}")
        return None

    transaction = result.get('transaction', {}) if isinstance(result, dict) else {}
    logger.info(f"Transaction {transaction.get('transactionId')} recorded for contract {contract_id}.")
    return transaction.get('transactionId')
