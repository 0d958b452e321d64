"""Document lifecycle and stock ledger workflows.

Each public function is one atomic unit of work: it validates, writes and
logs inside a single ``transaction.atomic()`` block. Import the functions
from their modules (``services.sales``, ``services.delivery`` ...).
"""
