"""
Unit tests for RequestLoggingMiddleware.
"""
import logging

import pytest
from django.contrib.auth.models import AnonymousUser
from django.http import HttpResponse
from django.test import RequestFactory

from jewel_connect.middleware import RequestLoggingMiddleware
from tests.conftest import UserFactory


def make_middleware(status_code=200):
    return RequestLoggingMiddleware(lambda request: HttpResponse(status=status_code))


class TestRequestLoggingMiddleware:

    def setup_method(self):
        self.factory = RequestFactory()

    def test_logs_api_request(self, caplog):
        request = self.factory.get('/api/v1/group-purchases')
        request.user = AnonymousUser()

        with caplog.at_level(logging.INFO, logger='jewel_connect.middleware'):
            response = make_middleware()(request)

        assert response.status_code == 200
        assert 'GET /api/v1/group-purchases -> 200 user=None' in caplog.text

    def test_ignores_non_api_paths(self, caplog):
        request = self.factory.get('/admin/')

        with caplog.at_level(logging.INFO, logger='jewel_connect.middleware'):
            make_middleware()(request)

        assert caplog.records == []

    @pytest.mark.django_db
    def test_conflict_is_a_warning(self, caplog):
        user = UserFactory()
        request = self.factory.post('/api/v1/group-purchases/1/join')
        request.user = user

        with caplog.at_level(logging.INFO, logger='jewel_connect.middleware'):
            make_middleware(status_code=409)(request)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert f'user={user.id}' in record.getMessage()

    def test_errors_are_logged_and_raised(self, caplog):
        def explode(request):
            raise RuntimeError('boom')

        request = self.factory.get('/api/v1/group-purchases')

        with caplog.at_level(logging.ERROR, logger='jewel_connect.middleware'):
            with pytest.raises(RuntimeError):
                RequestLoggingMiddleware(explode)(request)

        assert 'boom' in caplog.text
