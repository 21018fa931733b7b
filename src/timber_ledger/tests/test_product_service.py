"""Tests for the product catalog, warehouse view and master data."""

import pytest

from timber_ledger.services import master_data_service, product_service, production_service
from timber_ledger.services.dto import AllocationRequest, OutputRequest, ProductionRunRequest
from timber_ledger.services.exceptions import DuplicateRecordError, ValidationError


class TestCatalog:
    def test_seed_default_catalog(self, store):
        counts = product_service.seed_product_catalog(store)

        assert counts == {"created": 3, "existing": 0}
        products = product_service.get_product_types(store)
        assert [(p["name"], p["sku"], p["standard_volume"]) for p in products] == [
            ("Balok Struktural", "BS-01", 50.0),
            ("Horizontal Beam A", "HB-A", 20.0),
            ("Papan Cor", "PC-01", 5.0),
        ]
        assert all(p["stock_count"] == 0 for p in products)

    def test_seed_is_an_upsert_by_name(self, store):
        product_service.seed_product_catalog(store)
        counts = product_service.seed_product_catalog(store)

        assert counts == {"created": 0, "existing": 3}
        assert len(product_service.get_product_types(store)) == 3

    def test_create_product_type(self, store):
        product = product_service.create_product_type(store, " Kaso ", 2.5, sku="KS-1")
        assert product["name"] == "Kaso"
        assert product["standard_volume"] == 2.5
        assert product["stock_count"] == 0

    def test_duplicate_name_rejected(self, store, products):
        with pytest.raises(DuplicateRecordError):
            product_service.create_product_type(store, "Papan Cor", 5)

    @pytest.mark.parametrize("volume", [0, -1, float("nan"), "5", 10**400])
    def test_bad_standard_volume(self, store, volume):
        with pytest.raises(ValidationError):
            product_service.create_product_type(store, "Kaso", volume)

    def test_blank_name(self, store):
        with pytest.raises(ValidationError):
            product_service.create_product_type(store, "  ", 5)


class TestWarehouse:
    def test_empty_warehouse(self, store, products):
        warehouse = product_service.get_product_inventory(store)
        assert warehouse["kpis"] == {"total_units": 0, "total_volume": 0, "product_count": 3}

    def test_stock_after_production(self, store, sample_log, products):
        production_service.record_production_run(
            store,
            ProductionRunRequest(
                allocations=[AllocationRequest(sample_log["id"], 10)],
                outputs=[
                    OutputRequest(products["Balok Struktural"]["id"], 2),
                    OutputRequest(products["Papan Cor"]["id"], 4),
                ],
            ),
        )

        warehouse = product_service.get_product_inventory(store)

        by_name = {p["name"]: p for p in warehouse["products"]}
        assert by_name["Balok Struktural"]["stock_count"] == 2
        assert by_name["Balok Struktural"]["stock_volume"] == 100.0
        assert by_name["Papan Cor"]["stock_volume"] == 20.0
        assert warehouse["kpis"] == {"total_units": 6, "total_volume": 120.0, "product_count": 3}


class TestMasterData:
    def test_create_and_list(self, store):
        master_data_service.create_supplier(store, "S002", "Budi")
        master_data_service.create_supplier(store, "S001", "Mukit")
        master_data_service.create_wood_type(store, "Laut")

        data = master_data_service.get_master_data(store)

        assert [s["code"] for s in data["suppliers"]] == ["S001", "S002"]
        assert [w["name"] for w in data["wood_types"]] == ["Laut"]

    def test_duplicate_supplier_code(self, store):
        master_data_service.create_supplier(store, "S001", "Mukit")
        with pytest.raises(DuplicateRecordError):
            master_data_service.create_supplier(store, "S001", "Other")

    def test_duplicate_wood_type(self, store):
        master_data_service.create_wood_type(store, "Laut")
        with pytest.raises(DuplicateRecordError):
            master_data_service.create_wood_type(store, "Laut")

    def test_supplier_requires_code_and_name(self, store):
        with pytest.raises(ValidationError) as exc_info:
            master_data_service.create_supplier(store, "", None)
        assert len(exc_info.value.errors) == 2
