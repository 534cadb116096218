def ui_preferences(request):
    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        return {}
    pref = getattr(user, "ui_pref", None)
    if pref is None:
        return {}
    return {"ui_pref": pref}
