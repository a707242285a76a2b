"""
Unit tests for the stack models.
"""
import pytest
from pydantic import ValidationError

from harbor.MODELS.stack import (
    ProxyDisabled,
    ProxySimple,
    ProxyStructured,
    Service,
    Stack,
)


def make_service(**overrides):
    data = {'name': 'web', 'image': 'nginx:alpine', 'expose': 80}
    data.update(overrides)
    return Service.model_validate(data)


class TestProxyResolution:
    """The `traefik` field resolves once into a proxy variant."""

    def test_absent_is_disabled(self):
        service = make_service()
        assert isinstance(service.proxy, ProxyDisabled)
        assert not service.proxy_enabled

    def test_boolean_forms(self):
        assert isinstance(make_service(traefik=True).proxy, ProxySimple)
        assert isinstance(make_service(traefik=False).proxy, ProxyDisabled)
        assert make_service(traefik=True).proxy_enabled

    def test_mapping_is_structured(self):
        service = make_service(traefik={
            'rule': 'PathPrefix(`/api`)',
            'middlewares': ['strip@file'],
            'priority': 10,
        })
        assert isinstance(service.proxy, ProxyStructured)
        assert service.proxy.rule == 'PathPrefix(`/api`)'
        assert service.proxy.middlewares == ['strip@file']
        assert service.proxy.priority == 10

    def test_mapping_with_enabled_false_is_disabled(self):
        service = make_service(traefik={'enabled': False, 'rule': 'Host(`x`)'})
        assert isinstance(service.proxy, ProxyDisabled)

    def test_empty_mapping_uses_defaults(self):
        service = make_service(traefik={'enabled': True})
        assert isinstance(service.proxy, ProxyStructured)
        assert service.proxy.middlewares is None
        assert service.proxy.entrypoints == []

    def test_sticky_shorthand(self):
        service = make_service(traefik={'loadBalancer': {'sticky': True}})
        sticky = service.proxy.load_balancer.sticky
        assert sticky is not None
        assert sticky.cookie.secure is True
        assert sticky.cookie.same_site == 'strict'

    def test_camel_case_aliases(self):
        service = make_service(traefik={
            'tls': {'certResolver': 'dns', 'domains': [{'main': 'example.com', 'sans': ['*.example.com']}]},
            'loadBalancer': {
                'healthCheck': {'path': '/ping', 'followRedirects': False},
                'passHostHeader': True,
                'responseForwarding': {'flushInterval': '1s'},
            },
        })
        proxy = service.proxy
        assert proxy.tls.cert_resolver == 'dns'
        assert proxy.tls.domains[0].sans == ['*.example.com']
        assert proxy.load_balancer.health_check.follow_redirects is False
        assert proxy.load_balancer.pass_host_header is True
        assert proxy.load_balancer.response_forwarding.flush_interval == '1s'


def test_env_scalars_are_stringified():
    service = make_service(env={'PORT': 8080, 'DEBUG': True, 'RATIO': 0.5, 'EMPTY': None})
    assert service.env == {'PORT': '8080', 'DEBUG': 'true', 'RATIO': '0.5', 'EMPTY': ''}


def test_resources_numbers_are_strings():
    service = make_service(resources={'cpus': 0.5, 'memory': '512m', 'gpus': 1})
    assert service.resources.cpus == '0.5'
    assert service.resources.gpus == '1'


def test_entities_are_immutable():
    service = make_service()
    with pytest.raises(ValidationError):
        service.name = 'other'


def test_stack_aliases_and_empty_networks():
    stack = Stack.model_validate({
        'project': 'demo',
        'domain': 'example.com',
        'traefik': {'image': 'traefik:v3.1'},
        'observability': {'dozzle': {'enabled': True}, 'beszel': {'enabled': False}},
        'networks': {'private': {'internal': True}, 'public': None},
    })
    assert stack.edge.image == 'traefik:v3.1'
    assert stack.observability.log_viewer.enabled
    assert stack.observability.log_viewer.subdomain == 'logs'
    assert stack.networks['private'].internal
    assert not stack.networks['public'].internal


def test_get_service():
    stack = Stack.model_validate({'services': [{'name': 'web'}, {'name': 'api'}]})
    assert stack.get_service('api').name == 'api'
    assert stack.get_service('missing') is None
