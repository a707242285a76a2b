"""
Unit tests for the service builder and its route synthesis.
"""
from harbor.BUILDERS.environment import Environment
from harbor.BUILDERS.service_builder import ServiceBuilder
from harbor.MODELS.stack import Service, Stack

LOCAL = Environment.LOCAL
PRODUCTION = Environment.PRODUCTION


def make_stack(domain='example.com', tls_mode='acme', **extra):
    data = {
        'project': 'shop',
        'domain': domain,
        'tls': {'mode': tls_mode, 'email': 'ops@example.com'},
    }
    data.update(extra)
    return Stack.model_validate(data)


def make_service(**overrides):
    data = {'name': 'web', 'subdomain': 'app', 'image': 'nginx:alpine', 'expose': 80, 'traefik': True}
    data.update(overrides)
    return Service.model_validate(data)


def build(service, env=PRODUCTION, stack=None):
    return ServiceBuilder().build(service, stack or make_stack(), env)


def router(labels, suffix):
    return labels.get(f'traefik.http.routers.web.{suffix}')


def lb(labels, suffix):
    return labels.get(f'traefik.http.services.web.loadbalancer.{suffix}')


class TestServiceEntry:

    def test_basic_fields(self):
        service = make_service(
            env={'MODE': 'prod'},
            env_file=['.env'],
            volumes=[{'source': 'data', 'target': '/data'}, {'source': './conf', 'target': '/conf', 'read_only': True}],
            secrets=[{'name': 'db_password', 'file': './secrets/db', 'target': '/run/secrets/db'}],
        )
        entry = build(service, LOCAL, make_stack('localhost', 'disabled'))
        assert entry.image == 'nginx:alpine'
        assert entry.build is None
        assert entry.container_name == 'web'
        assert entry.expose == ['80']
        assert entry.environment == {'MODE': 'prod'}
        assert entry.env_file == ['.env']
        assert entry.volumes == ['data:/data', './conf:/conf:ro']
        assert entry.secrets[0].source == 'db_password'
        assert entry.secrets[0].target == '/run/secrets/db'
        assert entry.restart == 'unless-stopped'

    def test_build_block_replaces_image(self):
        service = make_service(image='', build={'context': './api', 'args': {'VERSION': 2}})
        entry = build(service)
        assert entry.image is None
        assert entry.build == {'context': './api', 'dockerfile': 'Dockerfile', 'args': {'VERSION': '2'}}

    def test_no_container_name_when_scaled(self):
        entry = build(make_service(replicas=3))
        assert entry.container_name is None
        assert entry.deploy.replicas == 3

    def test_resources(self):
        service = make_service(resources={
            'cpus': '0.5', 'memory': '512m', 'reserve_cpu': '0.1', 'reserve_mem': '64m',
            'gpus': 'all', 'shm_size': '1g', 'ulimits': {'nofile': {'soft': 1024, 'hard': 2048}},
        })
        entry = build(service, LOCAL, make_stack('localhost'))
        assert entry.deploy.resources.limits == {'cpus': '0.5', 'memory': '512m'}
        assert entry.deploy.resources.reservations == {'cpus': '0.1', 'memory': '64m'}
        assert entry.runtime == 'nvidia'
        assert entry.environment['NVIDIA_VISIBLE_DEVICES'] == 'all'
        assert entry.shm_size == '1g'
        assert entry.ulimits == {'nofile': {'soft': 1024, 'hard': 2048}}

    def test_health_check_and_deploy(self):
        entry = build(make_service(health_check={'enabled': True}, deploy={'strategy': 'recreate'}))
        assert entry.healthcheck.test[1] == 'curl -f http://localhost:80/health || exit 1'
        assert entry.deploy.update_config.order == 'stop-first'


class TestHardening:

    def test_production_is_hardened(self):
        entry = build(make_service())
        assert entry.cap_drop == ['ALL']
        assert entry.cap_add == ['CHOWN', 'SETGID', 'SETUID']
        assert entry.security_opt == ['no-new-privileges:true']
        assert entry.tmpfs == ['/tmp:rw,noexec,nosuid,size=100m', '/var/tmp:rw,noexec,nosuid,size=50m']
        assert entry.ulimits == {'nofile': {'soft': 65536, 'hard': 65536}, 'nproc': {'soft': 4096, 'hard': 4096}}
        assert entry.user == '1000:1000'

    def test_local_is_not_hardened(self):
        entry = build(make_service(), LOCAL, make_stack('localhost'))
        assert entry.cap_drop is None
        assert entry.security_opt is None
        assert entry.tmpfs is None
        assert entry.ulimits is None
        assert entry.user is None

    def test_custom_ulimits_override_hardened_ones(self):
        service = make_service(resources={'ulimits': {'nofile': {'soft': 10, 'hard': 20}}})
        entry = build(service)
        assert entry.ulimits['nofile'] == {'soft': 10, 'hard': 20}
        assert entry.ulimits['nproc'] == {'soft': 4096, 'hard': 4096}


class TestNetworkPlacement:

    def test_private_only_by_default(self):
        assert build(make_service(traefik=False)).networks == ['private']

    def test_routed_service_joins_edge_network(self):
        assert build(make_service()).networks == ['private', 'traefik']

    def test_internet_access(self):
        entry = build(make_service(traefik=False, network_access={'internet': True}))
        assert entry.networks == ['private', 'public']

    def test_internal_vetoes_internet(self):
        entry = build(make_service(network_access={'internet': True, 'internal': True}))
        assert 'public' not in entry.networks

    def test_custom_networks_appended(self):
        entry = build(make_service(network_access={'custom': ['backend', 'private']}))
        assert entry.networks == ['private', 'traefik', 'backend']


class TestRouting:

    def test_unrouted_service_has_no_labels(self):
        assert build(make_service(traefik=False)).labels is None

    def test_local_defaults(self):
        labels = build(make_service(), LOCAL, make_stack('localhost')).labels
        assert labels['traefik.enable'] == 'true'
        assert labels['traefik.docker.network'] == 'shop_traefik'
        assert router(labels, 'rule') == 'Host(`app.localhost`)'
        assert router(labels, 'entrypoints') == 'web'
        assert lb(labels, 'server.port') == '80'
        assert router(labels, 'tls') is None
        assert router(labels, 'middlewares') is None
        assert lb(labels, 'healthcheck.interval') is None
        assert lb(labels, 'responseforwarding.flushinterval') is None

    def test_production_defaults(self):
        labels = build(make_service()).labels
        assert router(labels, 'rule') == 'Host(`app.example.com`)'
        assert router(labels, 'entrypoints') == 'websecure'
        assert router(labels, 'tls') == 'true'
        assert router(labels, 'tls.certresolver') == 'le'
        assert router(labels, 'middlewares') == 'security-headers,rate-limit,request-size,web-timeout'
        assert labels['traefik.http.middlewares.web-timeout.circuitbreaker.expression'] == 'NetworkErrorRatio() > 0.30'
        assert lb(labels, 'healthcheck.interval') == '30s'
        assert lb(labels, 'healthcheck.timeout') == '10s'
        assert lb(labels, 'healthcheck.path') is None
        assert lb(labels, 'responseforwarding.flushinterval') == '100ms'
        assert router(labels, 'priority') is None

    def test_subdomain_less_service_routes_apex(self):
        labels = build(make_service(subdomain='')).labels
        assert router(labels, 'rule') == 'Host(`example.com`)'

    def test_selfsigned_has_no_resolver(self):
        labels = build(make_service(), stack=make_stack(tls_mode='selfsigned')).labels
        assert router(labels, 'tls') == 'true'
        assert router(labels, 'tls.certresolver') is None

    def test_tls_disabled_in_production(self):
        labels = build(make_service(), stack=make_stack(tls_mode='disabled')).labels
        assert not any('.tls' in key for key in labels)

    def test_health_check_path_follows_service_check(self):
        labels = build(make_service(health_check={'enabled': True, 'path': '/ready'})).labels
        assert lb(labels, 'healthcheck.path') == '/ready'

    def test_structured_overrides(self):
        service = make_service(traefik={
            'rule': 'Host(`shop.example.com`) && PathPrefix(`/api`)',
            'entrypoints': ['web', 'websecure'],
            'priority': 100,
            'tls': {'certResolver': 'dns', 'options': 'modern@file'},
            'loadBalancer': {
                'healthCheck': {'path': '/ping', 'interval': '5s', 'scheme': 'http'},
                'responseForwarding': {'flushInterval': '1s'},
                'passHostHeader': False,
            },
            'labels': {'traefik.http.routers.web.service': 'web'},
        })
        labels = build(service).labels
        assert router(labels, 'rule') == 'Host(`shop.example.com`) && PathPrefix(`/api`)'
        assert router(labels, 'entrypoints') == 'web,websecure'
        assert router(labels, 'priority') == '100'
        assert router(labels, 'tls.certresolver') == 'dns'
        assert router(labels, 'tls.options') == 'modern@file'
        assert lb(labels, 'healthcheck.path') == '/ping'
        assert lb(labels, 'healthcheck.interval') == '5s'
        assert lb(labels, 'healthcheck.timeout') == '10s'
        assert lb(labels, 'healthcheck.scheme') == 'http'
        assert lb(labels, 'responseforwarding.flushinterval') == '1s'
        assert lb(labels, 'passhostheader') == 'false'
        assert router(labels, 'service') == 'web'

    def test_explicit_middlewares_replace_security_chain(self):
        service = make_service(
            traefik={'middlewares': ['compress@file']},
            basic_auth={'enabled': True, 'users': {'admin': '$apr1$x'}},
        )
        labels = build(service).labels
        assert router(labels, 'middlewares') == 'compress@file,web-auth,web-timeout'
        assert labels['traefik.http.middlewares.web-auth.basicauth.users'] == 'admin:$$apr1$$x'

    def test_basic_auth_locally(self):
        service = make_service(basic_auth={'enabled': True, 'users_file': '/auth/htpasswd'})
        labels = build(service, LOCAL, make_stack('localhost')).labels
        assert router(labels, 'middlewares') == 'web-auth'
        assert labels['traefik.http.middlewares.web-auth.basicauth.usersfile'] == '/auth/htpasswd'

    def test_disabled_basic_auth_is_ignored(self):
        service = make_service(basic_auth={'enabled': False, 'users': {'admin': 'x'}})
        labels = build(service, LOCAL, make_stack('localhost')).labels
        assert router(labels, 'middlewares') is None


class TestStickyCookie:

    def test_single_replica_has_no_sticky_cookie(self):
        labels = build(make_service(replicas=1)).labels
        assert not any('sticky' in key for key in labels)

    def test_replicas_enable_sticky_cookie(self):
        labels = build(make_service(replicas=3)).labels
        assert lb(labels, 'sticky.cookie') == 'true'
        assert lb(labels, 'sticky.cookie.name') == '_web_server'
        assert lb(labels, 'sticky.cookie.secure') == 'true'
        assert lb(labels, 'sticky.cookie.httponly') == 'true'
        assert lb(labels, 'sticky.cookie.samesite') == 'strict'

    def test_sticky_override_on_single_replica(self):
        service = make_service(traefik={'loadBalancer': {'sticky': {'cookie': {'name': 'sid', 'sameSite': 'lax'}}}})
        labels = build(service).labels
        assert lb(labels, 'sticky.cookie.name') == 'sid'
        assert lb(labels, 'sticky.cookie.samesite') == 'lax'
