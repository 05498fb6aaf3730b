from mirin.models.user import User, IdCard, Notification, PushToken
from mirin.models.catalog import Product, Order, OrderItem
from mirin.models.rental import Rental, Payment
from mirin.models.audit import AuditLog, SystemSetting
