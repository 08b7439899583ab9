from .user import User, UserRole
from .order import Order, OrderStatus, ProductKind, ORDER_LIFECYCLE
from .commission import Commission, CommissionDistribution, CommissionStatus
from .entitlement import Entitlement, EntitlementStatus
from .withdrawal import Withdrawal, WithdrawalStatus, WITHDRAWAL_LIFECYCLE, IN_FLIGHT_STATUSES
from .otp import OtpCode
