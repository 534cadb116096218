from functools import wraps

from django.contrib.auth.views import redirect_to_login
from django.http import HttpResponseForbidden


def role_required(*roles):
    """
    Guard a view so only authenticated users holding one of ``roles`` get in.
    Anonymous users are sent to the login page; everyone else gets a 403.
    """
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            user = request.user
            if not user.is_authenticated:
                return redirect_to_login(request.get_full_path())
            if user.role not in roles:
                return HttpResponseForbidden("Not authorized")
            return view_func(request, *args, **kwargs)
        return _wrapped
    return decorator


admin_required = role_required("admin")
teacher_required = role_required("teacher")
student_required = role_required("student")
