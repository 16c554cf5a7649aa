import pytest

from config.parameters import (
    CognitoParameters,
    DatabaseParameters,
    DeploymentSequencerParameters,
    DockerRepositoryParameters,
    DomainParameters,
    EcrImage,
    ExternalImage,
    NetworkParameters,
    ServiceParameters,
    docker_image_from,
)


class TestDockerImage:
    """Test the two image sources of a service"""

    def test_repository_name_gives_ecr_image(self):
        image = docker_image_from(repository_name="blog-app", tag="1.0.0")

        assert image == EcrImage(repository_name="blog-app", tag="1.0.0")

    def test_ecr_tag_defaults_to_latest(self):
        assert docker_image_from(repository_name="blog-app").tag == "latest"

    def test_url_gives_external_image(self):
        assert docker_image_from(url="nginx:1.25") == ExternalImage(url="nginx:1.25")

    def test_both_sources_rejected(self):
        with pytest.raises(ValueError, match="not both"):
            docker_image_from(repository_name="blog-app", url="nginx:1.25")

    def test_no_source_rejected(self):
        with pytest.raises(ValueError):
            docker_image_from()

    def test_empty_values_rejected(self):
        with pytest.raises(ValueError):
            EcrImage(repository_name="")
        with pytest.raises(ValueError):
            ExternalImage(url="")


class TestServiceParameters:
    """Test service parameter defaults and validation"""

    def test_defaults(self):
        params = ServiceParameters(docker_image=ExternalImage(url="nginx"))

        assert params.application_port == 8080
        assert params.health_check_port == 8080
        assert params.health_check_path == "/"
        assert params.cpu == 256
        assert params.memory == 512
        assert params.desired_instances_count == 2
        assert params.sticky_sessions_enabled is False
        assert params.environment_variables == {}

    def test_health_check_port_can_differ(self):
        params = ServiceParameters(docker_image=ExternalImage(url="nginx"), health_check_port=9090)

        assert params.health_check_port == 9090

    def test_docker_image_type_checked(self):
        with pytest.raises(ValueError):
            ServiceParameters(docker_image="nginx")

    @pytest.mark.parametrize("duration", [0, 604801])
    def test_sticky_cookie_duration_bounds(self, duration):
        with pytest.raises(ValueError):
            ServiceParameters(
                docker_image=ExternalImage(url="nginx"),
                sticky_sessions_enabled=True,
                sticky_sessions_cookie_duration=duration,
            )


class TestNetworkParameters:
    """Test network parameter validation"""

    def test_defaults(self):
        params = NetworkParameters()

        assert params.ssl_certificate_arn is None
        assert params.nat_gateway_number == 0
        assert params.max_azs == 2

    @pytest.mark.parametrize(
        "kwargs",
        [{"isolated_subnets_per_az": 0}, {"public_subnets_per_az": 0}, {"max_azs": 0}],
    )
    def test_counts_must_be_positive(self, kwargs):
        with pytest.raises(ValueError):
            NetworkParameters(**kwargs)

    def test_nat_gateways_not_negative(self):
        with pytest.raises(ValueError):
            NetworkParameters(nat_gateway_number=-1)


class TestOtherParameters:
    """Test defaults and required values of the remaining parameter sets"""

    def test_database_defaults(self):
        params = DatabaseParameters()

        assert params.engine == "postgres"
        assert params.instance_class == "db.t3.micro"
        assert params.storage_capacity_in_gb_string == "10"
        assert params.storage_encrypted is True

    def test_queue_name_ends_with_fifo_only_when_fifo(self):
        assert DeploymentSequencerParameters(github_token="t").full_queue_name == "depQueue.fifo"
        assert (
            DeploymentSequencerParameters(github_token="t", fifo=False).full_queue_name
            == "depQueue"
        )

    def test_github_token_required(self):
        with pytest.raises(ValueError):
            DeploymentSequencerParameters(github_token="")

    def test_cognito_required_values(self):
        with pytest.raises(ValueError):
            CognitoParameters(
                login_page_domain_prefix="", application_name="blog", application_url="https://x"
            )

    def test_docker_repository_required_values(self):
        with pytest.raises(ValueError):
            DockerRepositoryParameters(repository_name="blog-app", account_id="")
        with pytest.raises(ValueError):
            DockerRepositoryParameters(
                repository_name="blog-app", account_id="123456789012", max_image_count=0
            )

    def test_domain_required_values(self):
        with pytest.raises(ValueError):
            DomainParameters(hosted_zone_domain_name="example.com", application_domain_name="")
