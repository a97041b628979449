import pytest
from tfstate_bootstrap.azure.api import StageFailure
from tfstate_bootstrap.azure.provisioner import Provisioner

ZONE = "privatelink.blob.core.windows.net"


def test_end_to_end_creates_record(backend, request_params):
    result = Provisioner(backend).run(request_params)

    assert result.storage_account_name == "st1"
    assert result.private_ip == "10.0.0.5"
    assert result.dns_record_fqdn == "st1.privatelink.blob.core.windows.net"
    assert result.container_name == "tfstate"
    assert result.dns_action == "created"

    record = backend.zone("dns-rg", ZONE, subscription="sub-dns")["st1"]
    assert record["ttl"] == 3600
    assert record["ips"] == ["10.0.0.5"]
    assert backend.containers == [("st1", "tfstate")]
    assert ("create_container", "st1", "rg1", "tfstate") in backend.calls
    assert backend.storage_accounts["st1"]["subnets"] == ["/vnets/vnet1/subnets/snet1"]
    assert backend.subscription == "sub-main"


def test_stage_order(backend, request_params):
    Provisioner(backend).run(request_params)
    assert backend.names() == [
        "create_storage_account",
        "get_subnet_id",
        "get_storage_account_id",
        "create_private_endpoint",
        "get_private_endpoint_ip",
        "add_storage_network_rule",
        "get_subscription",
        "set_subscription",
        "show_a_record",
        "create_a_record_set",
        "add_a_record",
        "set_subscription",
        "create_container",
    ]


def test_private_endpoint_binds_blob_of_storage_account(backend, request_params):
    Provisioner(backend).bind_private_endpoint(request_params)
    call = [c for c in backend.calls if c[0] == "create_private_endpoint"][0]
    assert call[1:] == (
        "st1-pe",
        "rg1",
        "eastus",
        "/vnets/vnet1/subnets/snet1",
        "/subscriptions/sub-main/resourceGroups/rg1/storageAccounts/st1",
        "st1-plink",
    )


def test_existing_record_is_updated(backend, request_params):
    backend.zone("dns-rg", ZONE, subscription="sub-dns")["st1"] = {"id": "rec-1", "ttl": 300, "ips": ["10.9.9.9"]}

    subscription, action = Provisioner(backend).reconcile_dns_record(request_params, "10.0.0.5", "sub-main")

    assert action == "updated"
    assert subscription == "sub-main"
    assert "create_a_record_set" not in backend.names()
    assert "add_a_record" not in backend.names()
    record = backend.zone("dns-rg", ZONE, subscription="sub-dns")["st1"]
    assert record["ips"] == ["10.0.0.5"]
    assert record["ttl"] == 300


def test_record_lookup_in_dns_subscription(backend, request_params):
    Provisioner(backend).reconcile_dns_record(request_params, "10.0.0.5", "sub-main")
    index = backend.calls.index(("show_a_record", "dns-rg", ZONE, "st1"))
    assert backend.calls[index - 1] == ("set_subscription", "sub-dns")


@pytest.mark.parametrize("existing", [False, True])
def test_subscription_restored_for_both_branches(backend, request_params, existing):
    if existing:
        backend.zone("dns-rg", ZONE, subscription="sub-dns")["st1"] = {"id": "rec-1", "ttl": 3600, "ips": ["1.1.1.1"]}

    subscription, _ = Provisioner(backend).reconcile_dns_record(request_params, "10.0.0.5", "sub-main")

    assert subscription == "sub-main"
    assert backend.subscription == "sub-main"
    assert backend.calls[-1] == ("set_subscription", "sub-main")


def test_subscription_restored_when_record_change_fails(backend, request_params):
    backend.fail.add("create_a_record_set")
    backend.subscription = "sub-main"

    with pytest.raises(StageFailure) as e:
        Provisioner(backend).reconcile_dns_record(request_params, "10.0.0.5", "sub-main")

    assert e.value.label == "A record creation"
    assert backend.subscription == "sub-main"


@pytest.mark.parametrize("existing, label", [(False, "A record creation"), (True, "A record update")])
def test_record_failure_survives_failed_restore(backend, request_params, caplog, existing, label):
    if existing:
        backend.zone("dns-rg", ZONE, subscription="sub-dns")["st1"] = {"id": "rec-1", "ttl": 3600, "ips": ["1.1.1.1"]}
    backend.fail.update({"create_a_record_set", "update_a_record"})
    backend.fail_subscriptions.add("sub-main")

    with pytest.raises(StageFailure) as e:
        Provisioner(backend).reconcile_dns_record(request_params, "10.0.0.5", "sub-main")

    assert e.value.label == label
    assert backend.calls[-1] == ("set_subscription", "sub-main")
    assert "Switching back to original subscription failed" in caplog.text


def test_failed_restore_after_record_change(backend, request_params):
    backend.fail_subscriptions.add("sub-main")

    with pytest.raises(StageFailure) as e:
        Provisioner(backend).reconcile_dns_record(request_params, "10.0.0.5", "sub-main")

    assert e.value.label == "Switching back to original subscription"
    assert backend.zone("dns-rg", ZONE, subscription="sub-dns")["st1"]["ips"] == ["10.0.0.5"]


def test_lookup_error_falls_back_to_create(backend, request_params, caplog):
    backend.lookup_error = "connection reset"

    _, action = Provisioner(backend).reconcile_dns_record(request_params, "10.0.0.5", "sub-main")

    assert action == "created"
    assert "create_a_record_set" in backend.names()
    assert "connection reset" in caplog.text


def test_lookup_error_fails_in_strict_mode(backend, request_params):
    backend.lookup_error = "connection reset"

    with pytest.raises(StageFailure) as e:
        Provisioner(backend, strict_dns_lookup=True).reconcile_dns_record(request_params, "10.0.0.5", "sub-main")

    assert e.value.label == "A record lookup"
    assert "create_a_record_set" not in backend.names()
    assert backend.subscription == "sub-main"


@pytest.mark.parametrize(
    "method, label",
    [
        ("create_storage_account", "Storage account creation"),
        ("get_subnet_id", "Subnet ID retrieval"),
        ("get_storage_account_id", "Storage account ID retrieval"),
        ("create_private_endpoint", "Private endpoint creation"),
        ("get_private_endpoint_ip", "Private endpoint IP retrieval"),
        ("add_storage_network_rule", "Network rule addition"),
        ("get_subscription", "Reading current subscription"),
        ("add_a_record", "A record IP addition"),
        ("create_container", "Storage container creation"),
    ],
)
def test_failing_stage_aborts_run(backend, request_params, method, label):
    backend.fail.add(method)

    with pytest.raises(StageFailure) as e:
        Provisioner(backend).run(request_params)

    assert e.value.label == label
    assert str(e.value) == f"{label} failed"
    if method == "add_a_record":
        assert backend.calls[-1] == ("set_subscription", "sub-main")
    else:
        assert backend.names()[-1] == method
    if method != "create_container":
        assert backend.containers == []


def test_failing_subscription_switch(backend, request_params):
    backend.fail.add("set_subscription")

    with pytest.raises(StageFailure) as e:
        Provisioner(backend).run(request_params)

    assert e.value.label == "Switching to DNS subscription"
    assert "show_a_record" not in backend.names()


def test_empty_private_ip_is_failure(backend, request_params):
    backend.private_ip = ""

    with pytest.raises(StageFailure) as e:
        Provisioner(backend).run(request_params)

    assert e.value.label == "Private endpoint IP retrieval"
    assert "add_storage_network_rule" not in backend.names()
