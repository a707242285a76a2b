"""
Unit tests for the secret collector.
"""
import logging

from harbor.BUILDERS.secrets import SecretCollector
from harbor.MODELS.stack import Service


def make_service(name, *secrets):
    return Service.model_validate({'name': name, 'image': 'app', 'secrets': list(secrets)})


def test_file_and_external_secrets():
    secrets = SecretCollector().collect([
        make_service('api', {'name': 'db_password', 'file': './secrets/db'}),
        make_service('worker', {'name': 'api_key', 'external': True}),
    ])
    assert secrets['db_password'].model_dump(exclude_none=True) == {'file': './secrets/db'}
    assert secrets['api_key'].model_dump(exclude_none=True) == {'external': True}


def test_first_declaration_wins(caplog):
    services = [
        make_service('api', {'name': 'db_password', 'file': './secrets/db'}),
        make_service('worker', {'name': 'db_password', 'file': './other/db'}),
    ]
    with caplog.at_level(logging.WARNING, logger='harbor'):
        secrets = SecretCollector().collect(services)
    assert list(secrets) == ['db_password']
    assert secrets['db_password'].file == './secrets/db'
    assert 'db_password' in caplog.text


def test_identical_redeclaration_is_silent(caplog):
    services = [
        make_service('api', {'name': 'db_password', 'file': './secrets/db'}),
        make_service('worker', {'name': 'db_password', 'file': './secrets/db', 'target': '/run/db'}),
    ]
    with caplog.at_level(logging.WARNING, logger='harbor'):
        secrets = SecretCollector().collect(services)
    assert len(secrets) == 1
    assert caplog.text == ''


def test_no_secrets():
    assert SecretCollector().collect([make_service('api')]) == {}
