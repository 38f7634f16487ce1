# marketplace/middleware.py
from django.http import HttpRequest

NO_STORE_PREFIXES = ('/cart/', '/orders/create/', '/payments/')


class SecurityHeadersMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        response['X-Content-Type-Options'] = 'nosniff'
        response['X-Frame-Options'] = 'DENY'
        response['Referrer-Policy'] = 'same-origin'
        if request.is_secure():
            response['Strict-Transport-Security'] = 'max-age=31536000'

        return response


class CacheControlMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request: HttpRequest):
        response = self.get_response(request)

        # Never cache cart, checkout or payment responses
        if request.path.startswith(NO_STORE_PREFIXES):
            response['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
            response['Pragma'] = 'no-cache'
            response['Expires'] = '0'

        return response
