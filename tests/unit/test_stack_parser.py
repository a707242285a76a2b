"""
Unit tests for the stack file parser.
"""
import pytest
import yaml

from harbor.errors import StackLoadError
from harbor.MODELS.stack import ProxySimple
from harbor.PARSERS.stack_parser import StackParser

STACK = {
    'version': 1,
    'project': 'shop',
    'domain': 'example.com',
    'tls': {'mode': 'acme', 'email': 'ops@example.com'},
    'networks': {'private': {'internal': True}, 'public': None},
    'services': [
        {'name': 'web', 'subdomain': 'app', 'image': 'nginx:alpine', 'expose': 80, 'traefik': True},
    ],
}


def test_load(tmp_path):
    stack_file = tmp_path / 'stack.yml'
    with open(stack_file, 'w') as f:
        yaml.dump(STACK, f)

    stack = StackParser().load(str(stack_file))
    assert stack.project == 'shop'
    assert stack.tls.mode == 'acme'
    assert isinstance(stack.services[0].proxy, ProxySimple)
    assert stack.networks['private'].internal


def test_no_interpolation():
    stack = StackParser().parse_from_string(
        "project: shop\ndomain: example.com\nservices:\n  - name: web\n    env:\n      URL: ${HOST}\n"
    )
    assert stack.services[0].env['URL'] == '${HOST}'


def test_missing_file(tmp_path):
    path = str(tmp_path / 'missing.yml')
    with pytest.raises(StackLoadError) as excinfo:
        StackParser().load(path)
    assert excinfo.value.path == path


def test_invalid_utf8(tmp_path):
    stack_file = tmp_path / 'stack.yml'
    stack_file.write_bytes(b'project: demo\ndomain: \xff\xfe\n')
    with pytest.raises(StackLoadError) as excinfo:
        StackParser().load(str(stack_file))
    assert 'not valid UTF-8' in str(excinfo.value)
    assert excinfo.value.path == str(stack_file)


@pytest.mark.parametrize('content, message', [
    ('', 'empty'),
    ('# only a comment\n', 'empty'),
    ('- a\n- b\n', 'mapping'),
    ('project: [unclosed\n', 'invalid YAML'),
    ('services: 3\n', 'services'),
    ('services:\n  - name: web\n    replicas: many\n', 'services.0.replicas'),
])
def test_rejected_documents(content, message):
    with pytest.raises(StackLoadError) as excinfo:
        StackParser().parse_from_string(content)
    assert message in str(excinfo.value)
