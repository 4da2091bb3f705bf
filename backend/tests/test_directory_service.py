import pytest

from chopp.services import directory_service, rental_service
from chopp.time_utils import today
from chopp.validation import ConflictError, NotFoundError


def test_search_customers_matches_name_address_and_phone(db_session, make_customer):
    make_customer("Maria Souza", phone="11988887777", address="Rua das Flores, 120")
    make_customer("Joao Lima", phone="11977776666", address="Av. Brasil, 900")

    assert [c.full_name for c in directory_service.search_customers("maria")] == ["Maria Souza"]
    assert [c.full_name for c in directory_service.search_customers("BRASIL")] == ["Joao Lima"]
    assert [c.full_name for c in directory_service.search_customers("7666")] == ["Joao Lima"]
    assert len(directory_service.search_customers("  ")) == 2


def test_customers_are_not_unique(db_session):
    directory_service.create_customer(patch={"full_name": "Ana"})
    directory_service.create_customer(patch={"full_name": "Ana"})

    assert len(directory_service.list_customers()) == 2


def test_missing_customer_raises_not_found(db_session):
    with pytest.raises(NotFoundError):
        directory_service.get_customer(999)


def test_delete_customer_with_rental_is_conflict(db_session, make_customer, make_asset):
    customer = make_customer()
    asset = make_asset()
    rental_service.create_rental(asset_id=asset.id, customer_id=customer.id, expected_return_date=today())

    with pytest.raises(ConflictError):
        directory_service.delete_customer(customer_id=customer.id)


def test_delete_rented_asset_is_refused(db_session, make_customer, make_asset):
    customer = make_customer()
    asset = make_asset()
    rental_service.create_rental(asset_id=asset.id, customer_id=customer.id, expected_return_date=today())

    with pytest.raises(ConflictError, match="rented"):
        directory_service.delete_asset(asset_id=asset.id)


def test_asset_cannot_be_marked_rented_by_hand(db_session, make_asset):
    asset = make_asset()

    with pytest.raises(ConflictError):
        directory_service.update_asset(asset_id=asset.id, patch={"status": "rented"})
    with pytest.raises(ConflictError):
        directory_service.create_asset(patch={"code": "CHP-09", "status": "rented"})

    updated = directory_service.update_asset(asset_id=asset.id, patch={"status": "maintenance"})
    assert updated.status == "maintenance"


def test_list_assets_by_status(db_session, make_asset):
    make_asset("CHP-02")
    make_asset("CHP-01", status="maintenance")

    assert [a.code for a in directory_service.list_assets()] == ["CHP-01", "CHP-02"]
    assert [a.code for a in directory_service.available_assets()] == ["CHP-02"]


def test_delete_unused_asset(db_session, make_asset):
    asset = make_asset()

    directory_service.delete_asset(asset_id=asset.id)

    assert directory_service.list_assets() == []
