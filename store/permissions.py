from functools import wraps

from django.contrib.auth.views import redirect_to_login
from django.core.exceptions import PermissionDenied

from .models import UserPermission, UserRole

SECTIONS = [section for section, _label in UserPermission.SECTIONS]


def get_role(user):
    if not user or not user.is_authenticated:
        return None
    if user.is_superuser:
        return UserRole.ADMIN
    role = UserRole.objects.filter(user=user).values_list('role', flat=True).first()
    return role


def has_role(user, role):
    return get_role(user) == role


def is_admin(user):
    return has_role(user, UserRole.ADMIN)


def has_any_role(user):
    return get_role(user) is not None


def section_permissions(user):
    """Mapping section -> bool for every dashboard section."""
    role = get_role(user)
    if role == UserRole.ADMIN:
        return {section: True for section in SECTIONS}
    granted = {}
    if role == UserRole.USER:
        granted = dict(
            UserPermission.objects.filter(user=user).values_list('section', 'has_access')
        )
    return {section: granted.get(section, False) is True for section in SECTIONS}


def has_section_access(user, section):
    role = get_role(user)
    if role == UserRole.ADMIN:
        return True
    if role != UserRole.USER:
        return False
    return UserPermission.objects.filter(user=user, section=section, has_access=True).exists()


def set_section_permissions(user, sections):
    """Grant exactly ``sections`` to a non-admin user, revoking the rest."""
    for section in SECTIONS:
        UserPermission.objects.update_or_create(
            user=user, section=section, defaults={'has_access': section in sections},
        )


def _guard(request, check):
    if not request.user.is_authenticated:
        return redirect_to_login(request.get_full_path())
    if not check(request.user):
        raise PermissionDenied
    return None


def section_required(section):
    """Dashboard screens: anonymous users go to login, users without the section get a 403."""
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            denied = _guard(request, lambda user: has_section_access(user, section))
            if denied is not None:
                return denied
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


def role_required(view_func):
    """Any dashboard role (admin or user)."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        denied = _guard(request, has_any_role)
        if denied is not None:
            return denied
        return view_func(request, *args, **kwargs)
    return wrapper


def admin_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        denied = _guard(request, is_admin)
        if denied is not None:
            return denied
        return view_func(request, *args, **kwargs)
    return wrapper
