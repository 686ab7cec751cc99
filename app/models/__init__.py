from app.models.premium_account import PremiumAccount
from app.models.payment import Payment
from app.models.trial import Trial
from app.models.trial_server import TrialServer, TrialAllocation
from app.models.vpn_server import VpnServer
from app.models.admin_user import AdminUser

__all__ = [
    "PremiumAccount",
    "Payment",
    "Trial",
    "TrialServer",
    "TrialAllocation",
    "VpnServer",
    "AdminUser",
]
