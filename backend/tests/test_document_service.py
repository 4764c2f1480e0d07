# Overview: Pytest coverage for document numbering.

import pytest

from ferreteria.errors import InvalidLine
from ferreteria.services.concurrency import unit_of_work
from ferreteria.services.document_service import DocumentSequenceError, next_document_number


class TestNextDocumentNumber:

    def test_first_number_and_increment(self, db_session):
        with unit_of_work():
            first = next_document_number(document_type="sale", prefix="V")
            second = next_document_number(document_type="sale", prefix="V")

        assert (first, second) == ("V-000001", "V-000002")

    def test_sequences_are_per_document_type(self, db_session):
        with unit_of_work():
            sale = next_document_number(document_type="sale", prefix="V")
            receipt = next_document_number(document_type="purchase_order", prefix="OC", pad=4)

        assert sale == "V-000001"
        assert receipt == "OC-0001"

    def test_rollback_releases_the_number(self, db_session):
        with pytest.raises(InvalidLine):
            with unit_of_work():
                next_document_number(document_type="sale", prefix="V")
                raise InvalidLine("abort")

        with unit_of_work():
            assert next_document_number(document_type="sale", prefix="V") == "V-000001"

    def test_document_type_required(self, db_session):
        with pytest.raises(DocumentSequenceError):
            next_document_number(document_type="", prefix="V")
