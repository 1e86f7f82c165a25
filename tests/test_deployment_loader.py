"""Unit tests for deployment.yaml loading and validation."""

import pytest

from ecs_hosting.deployment_loader import (
    DeploymentNotFoundError,
    DeploymentParseError,
    discover_deployments,
    get_deployment_path,
    load_deployment,
    parse_size_to_mb,
)


class TestDiscovery:
    """Test deployment discovery."""

    def test_missing_base_directory(self, tmp_path, monkeypatch):
        """No deployments/ directory means no deployments."""
        monkeypatch.setenv("ECS_HOSTING_HOME", str(tmp_path))

        assert discover_deployments() == []

    def test_lists_directories_with_definition(self, hosting_home, write_deployment):
        """Only directories holding deployment.yaml are listed, sorted."""
        write_deployment("zeta")
        write_deployment("alpha")
        (hosting_home / "deployments" / "empty").mkdir()

        assert discover_deployments() == ["alpha", "zeta"]

    def test_unknown_deployment(self, hosting_home):
        """Asking for a missing deployment raises."""
        with pytest.raises(DeploymentNotFoundError, match="nope"):
            get_deployment_path("nope")


class TestParseSize:
    """Test memory size parsing."""

    @pytest.mark.parametrize(
        "size,expected",
        [("512M", 512), ("1G", 1024), ("2g", 2048), ("300", 300), (" 64m ", 64)],
    )
    def test_sizes(self, size, expected):
        assert parse_size_to_mb(size) == expected

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            parse_size_to_mb("lots")


class TestLoadDeployment:
    """Test parsing a full deployment definition."""

    def test_loads_apps(self, write_deployment):
        """Both apps are parsed with their settings."""
        write_deployment("staging")

        deployment = load_deployment("staging")

        assert deployment.id == "staging"
        assert deployment.region == "eu-west-1"
        assert [app.name for app in deployment.apps] == ["web", "api"]

        web, api = deployment.apps
        assert web.host_label == "www"
        assert web.cpu == 256
        assert web.memory == "512M"
        assert api.host_label == "api"
        assert api.environment == {"LOG_LEVEL": "debug"}
        assert api.secrets == {"DATABASE_URL": "op://vault/db/url"}
        assert api.health_check.path == "/healthz"
        assert api.health_check.matcher == "200"

    def test_defaults(self, write_deployment):
        """Network and cluster sections are optional."""
        write_deployment("staging")

        deployment = load_deployment("staging")

        assert deployment.network.vpc_cidr == "10.0.0.0/16"
        assert deployment.network.availability_zones == ["eu-west-1a", "eu-west-1b"]
        assert deployment.cluster.instance_type == "t3.small"
        assert deployment.log_retention_days == 14
        assert deployment.certificate_arn is None

    def test_trailing_dot_stripped(self, write_deployment, make_data):
        write_deployment("staging", make_data(domain_name="example.org."))

        assert load_deployment("staging").domain_name == "example.org"

    def test_invalid_yaml(self, write_deployment):
        write_deployment("broken", raw="id: [unclosed")

        with pytest.raises(DeploymentParseError, match="Invalid YAML"):
            load_deployment("broken")

    def test_not_a_mapping(self, write_deployment):
        write_deployment("broken", raw="- just\n- a list\n")

        with pytest.raises(DeploymentParseError, match="mapping"):
            load_deployment("broken")

    def test_missing_required_key(self, write_deployment, make_data):
        data = make_data()
        del data["domain_name"]
        write_deployment("staging", data)

        with pytest.raises(DeploymentParseError, match="domain_name"):
            load_deployment("staging")

    def test_requires_an_app(self, write_deployment, make_data):
        write_deployment("staging", make_data(apps=[]))

        with pytest.raises(DeploymentParseError, match="at least one app"):
            load_deployment("staging")

    def test_app_missing_image(self, write_deployment, make_data):
        write_deployment(
            "staging", make_data(apps=[{"name": "web", "container_port": 80}])
        )

        with pytest.raises(DeploymentParseError, match="image"):
            load_deployment("staging")


class TestValidation:
    """Test rejection of definitions AWS would refuse."""

    def _apps(self, *overrides):
        return [
            {"name": f"app{i}", "image": "nginx", "container_port": 80, **o}
            for i, o in enumerate(overrides)
        ]

    def test_duplicate_names(self, write_deployment, make_data):
        apps = self._apps({}, {})
        apps[1]["name"] = "app0"
        write_deployment("staging", make_data(apps=apps))

        with pytest.raises(DeploymentParseError, match="Duplicate app name: app0"):
            load_deployment("staging")

    def test_duplicate_subdomains(self, write_deployment, make_data):
        """An explicit subdomain may clash with another app's name."""
        write_deployment(
            "staging", make_data(apps=self._apps({}, {"subdomain": "app0"}))
        )

        with pytest.raises(DeploymentParseError, match="subdomain"):
            load_deployment("staging")

    def test_duplicate_priorities(self, write_deployment, make_data):
        write_deployment(
            "staging",
            make_data(apps=self._apps({"priority": 5}, {"priority": 5})),
        )

        with pytest.raises(DeploymentParseError, match="priority"):
            load_deployment("staging")

    @pytest.mark.parametrize("port", [0, 65536])
    def test_port_range(self, write_deployment, make_data, port):
        write_deployment(
            "staging", make_data(apps=self._apps({"container_port": port}))
        )

        with pytest.raises(DeploymentParseError, match="out of range"):
            load_deployment("staging")

    def test_negative_desired_count(self, write_deployment, make_data):
        write_deployment(
            "staging", make_data(apps=self._apps({"desired_count": -1}))
        )

        with pytest.raises(DeploymentParseError, match="desired_count"):
            load_deployment("staging")

    def test_zero_desired_count_allowed(self, write_deployment, make_data):
        """A stopped app keeps its routing but runs no tasks."""
        write_deployment(
            "staging", make_data(apps=self._apps({"desired_count": 0}))
        )

        assert load_deployment("staging").apps[0].desired_count == 0

    @pytest.mark.parametrize("name", ["Web", "web_app", "-web", "web-"])
    def test_invalid_app_name(self, write_deployment, make_data, name):
        write_deployment("staging", make_data(apps=self._apps({"name": name})))

        with pytest.raises(DeploymentParseError, match="Invalid app name"):
            load_deployment("staging")

    def test_invalid_deployment_id(self, write_deployment, make_data):
        write_deployment("staging", make_data(id="Staging Env"))

        with pytest.raises(DeploymentParseError, match="deployment id"):
            load_deployment("staging")

    def test_invalid_memory(self, write_deployment, make_data):
        write_deployment(
            "staging", make_data(apps=self._apps({"memory": "a lot"}))
        )

        with pytest.raises(DeploymentParseError, match="memory"):
            load_deployment("staging")

    def test_cluster_size_order(self, write_deployment, make_data):
        write_deployment(
            "staging",
            make_data(cluster={"min_size": 2, "desired_capacity": 1, "max_size": 3}),
        )

        with pytest.raises(DeploymentParseError, match="min_size"):
            load_deployment("staging")

    def test_single_subnet_rejected(self, write_deployment, make_data):
        """The load balancer needs two availability zones."""
        write_deployment(
            "staging", make_data(network={"public_subnet_cidrs": ["10.0.0.0/24"]})
        )

        with pytest.raises(DeploymentParseError, match="two availability zones"):
            load_deployment("staging")

    def test_priority_out_of_range(self, write_deployment, make_data):
        write_deployment(
            "staging", make_data(apps=self._apps({"priority": 50001}))
        )

        with pytest.raises(DeploymentParseError, match="priority"):
            load_deployment("staging")


class TestInvalidValues:
    """Malformed values are reported as parse errors, never raw exceptions."""

    def test_non_numeric_cluster_size(self, write_deployment, make_data):
        write_deployment("staging", make_data(cluster={"min_size": "abc"}))

        with pytest.raises(DeploymentParseError, match="Invalid cluster definition"):
            load_deployment("staging")

    def test_cluster_not_a_mapping(self, write_deployment, make_data):
        write_deployment("staging", make_data(cluster=["t3.small"]))

        with pytest.raises(DeploymentParseError, match="cluster must be a mapping"):
            load_deployment("staging")

    def test_non_numeric_log_retention(self, write_deployment, make_data):
        write_deployment("staging", make_data(log_retention_days="forever"))

        with pytest.raises(DeploymentParseError, match="log_retention_days 'forever'"):
            load_deployment("staging")

    def test_non_numeric_priority(self, write_deployment, make_data):
        data = make_data()
        data["apps"][0]["priority"] = "high"
        write_deployment("staging", data)

        with pytest.raises(DeploymentParseError, match="invalid priority 'high'"):
            load_deployment("staging")

    @pytest.mark.parametrize("network", ["10.0.0.0/16", ["10.0.0.0/24"], 5])
    def test_network_not_a_mapping(self, write_deployment, make_data, network):
        write_deployment("staging", make_data(network=network))

        with pytest.raises(DeploymentParseError, match="network must be a mapping"):
            load_deployment("staging")

    def test_health_check_not_a_mapping(self, write_deployment, make_data):
        data = make_data()
        data["apps"][1]["health_check"] = "/healthz"
        write_deployment("staging", data)

        with pytest.raises(DeploymentParseError, match="Invalid app definition"):
            load_deployment("staging")
