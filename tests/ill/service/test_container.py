from palace.ill.lifecycle.backend import LibrisBackend
from palace.ill.service.container import container_instance
from palace.ill.sqlalchemy.model import IllRequest
from tests.fixtures.services import ServicesFixture


class TestServices:
    def test_container_instance(self, services_fixture: ServicesFixture):
        assert container_instance() is services_fixture.services

    def test_backend(self, services_fixture: ServicesFixture):
        services = services_fixture.services
        services.init_resources()

        session = services.session_maker()()
        try:
            backend = services.backend(db=session)
            assert isinstance(backend, LibrisBackend)

            lifecycle = backend.lifecycle
            assert lifecycle.settings.strict_transitions is True
            assert lifecycle.client.sigil == "Xyz"
            assert lifecycle.graph is services.status_graph()
            assert lifecycle.translator is services.status_translator()
            # A new backend for every session, sharing the services.
            other = services.backend(db=session)
            assert other is not backend
            assert other.lifecycle.client is lifecycle.client

            # The schema was created when the resources were initialized.
            request = IllRequest(status="IN_REM", orderid="ORD-1")
            session.add(request)
            session.flush()
            result = backend.dispatch("renew", request)
            assert result["status"] == "not_renewed"
        finally:
            session.close()
            services.shutdown_resources()
