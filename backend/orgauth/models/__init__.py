from orgauth.models.organization import Organization
from orgauth.models.principal import OrganizationAdmin, Superadmin
from orgauth.models.auth import LoginAttempt, LoginSession, OtpChallenge
from orgauth.models.audit_log import AuditLog
