from .auth import AuthContext, TOKEN_COOKIE, USER_COOKIE


class AuthContextMiddleware:
    """
    Attaches the visitor's AuthContext to `request.auth_context` and clears
    the identity cookies once the backend has rejected the token.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.auth_context = AuthContext.from_cookies(request.COOKIES)

        response = self.get_response(request)

        if request.auth_context.expired:
            response.delete_cookie(TOKEN_COOKIE)
            response.delete_cookie(USER_COOKIE)

        return response
