import uuid

import pytest

from apps.catalog.repository import ProductRepository
from apps.orders.errors import ProductNotFoundError


@pytest.fixture
def repo():
    return ProductRepository()


@pytest.mark.django_db
def test_get_product_returns_domain_product(repo, make_product):
    p = make_product(name="Mug", price="7.25", stock=4)
    got = repo.get_product(str(p.id))
    assert got.id == p.id
    assert got.name == "Mug"
    assert str(got.price) == "7.25"
    assert got.stock == 4
    assert got.is_active is True


@pytest.mark.django_db
@pytest.mark.parametrize("pid", [uuid.uuid4(), "not-a-uuid"])
def test_get_product_missing_or_malformed(repo, pid):
    assert repo.get_product(pid) is None


@pytest.mark.django_db
def test_decrement_only_when_enough_stock(repo, make_product, stock_of):
    p = make_product(stock=3)
    assert repo.decrement_stock(p.id, 2) is True
    assert stock_of(p) == 1
    # not enough left: nothing changes
    assert repo.decrement_stock(p.id, 2) is False
    assert stock_of(p) == 1
    assert repo.decrement_stock(p.id, 1) is True
    assert stock_of(p) == 0


@pytest.mark.django_db
def test_decrement_unknown_product_is_false(repo):
    assert repo.decrement_stock(uuid.uuid4(), 1) is False
    assert repo.decrement_stock("nope", 1) is False


@pytest.mark.django_db
@pytest.mark.parametrize("qty", [0, -1])
def test_non_positive_quantities_are_rejected(repo, make_product, stock_of, qty):
    p = make_product(stock=3)
    with pytest.raises(ValueError):
        repo.decrement_stock(p.id, qty)
    with pytest.raises(ValueError):
        repo.increment_stock(p.id, qty)
    assert stock_of(p) == 3


@pytest.mark.django_db
def test_increment_restores_stock(repo, make_product, stock_of):
    p = make_product(stock=0)
    repo.increment_stock(p.id, 5)
    assert stock_of(p) == 5


@pytest.mark.django_db
def test_increment_unknown_product_raises(repo):
    missing = uuid.uuid4()
    with pytest.raises(ProductNotFoundError) as e:
        repo.increment_stock(missing, 1)
    assert e.value.product_id == missing


@pytest.mark.django_db
def test_check_and_set_stock(repo, make_product, stock_of):
    p = make_product(stock=2)
    assert repo.check_stock(p.id, 2)
    assert not repo.check_stock(p.id, 3)
    assert not repo.check_stock(uuid.uuid4(), 1)

    repo.set_stock(p.id, 9)
    assert stock_of(p) == 9
    with pytest.raises(ValueError):
        repo.set_stock(p.id, -1)
    with pytest.raises(ProductNotFoundError):
        repo.set_stock(uuid.uuid4(), 1)


@pytest.mark.django_db
def test_find_low_stock(repo, make_product, settings):
    settings.CATALOG_LOW_STOCK_THRESHOLD = 3
    empty = make_product(name="Empty", stock=0)
    low = make_product(name="Low", stock=3)
    make_product(name="Plenty", stock=20)
    make_product(name="Retired", stock=0, is_active=False)

    assert [p.id for p in repo.find_low_stock()] == [empty.id, low.id]
    assert [p.name for p in repo.find_low_stock(threshold=0)] == ["Empty"]


@pytest.mark.django_db
def test_set_stock_malformed_id_is_not_found(repo):
    with pytest.raises(ProductNotFoundError) as e:
        repo.set_stock("garbage", 1)
    assert e.value.product_id == "garbage"
