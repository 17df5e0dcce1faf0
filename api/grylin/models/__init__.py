# Every table must be registered on Base.metadata before foreign keys resolve
from grylin.models import alert, document, email_account, folder, life_stack, user  # noqa: F401
