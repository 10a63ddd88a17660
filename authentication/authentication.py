import secrets

from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from rest_framework import authentication, exceptions

CENTRAL_CLIENT = 'central'


class CentralApiKeyAuthentication(authentication.BaseAuthentication):
    """
    The central dashboard reads cross-branch figures with a shared key sent in
    the ``X-API-Key`` header. An empty CENTRAL_DASHBOARD_API_KEY turns the
    central endpoints off.
    """
    header = 'X-API-Key'

    def authenticate(self, request):
        supplied = request.META.get('HTTP_X_API_KEY')
        if not supplied:
            return None

        expected = settings.CENTRAL_DASHBOARD_API_KEY
        if not expected or not secrets.compare_digest(supplied.encode(), expected.encode()):
            raise exceptions.AuthenticationFailed('Invalid API key')
        return AnonymousUser(), CENTRAL_CLIENT

    def authenticate_header(self, request):
        return self.header
