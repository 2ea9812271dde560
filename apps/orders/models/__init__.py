"""
Orders app models, split per concern and re-exported here so that
`from apps.orders.models import Order` keeps working.
"""

from .order import *           # Order
from .item import *            # OrderItem
from .return_request import *  # ReturnRequest
