import mongomock

from database import DocumentStore
from errors import FetchFailure, WriteFailure


def make_store():
    return DocumentStore(mongomock.MongoClient().portfolio_test)


class FlakyStore(DocumentStore):
    """In-memory store where chosen collections fail to read or write.

    Counts the writes that reached the database so tests can check that
    nothing was written.
    """

    def __init__(self, database=None, broken_reads=(), broken_writes=()):
        super().__init__(database if database is not None else mongomock.MongoClient().portfolio_test)
        self.broken_reads = set(broken_reads)
        self.broken_writes = set(broken_writes)
        self.writes = 0

    def _check_read(self, collection_name):
        if collection_name in self.broken_reads:
            raise FetchFailure(f"{collection_name} unreachable")

    def _check_write(self, collection_name):
        if collection_name in self.broken_writes:
            raise WriteFailure(f"{collection_name} rejected the write")
        self.writes += 1

    async def get(self, collection_name, doc_id):
        self._check_read(collection_name)
        return await super().get(collection_name, doc_id)

    async def list(self, collection_name, filter_dict=None, order_by=None):
        self._check_read(collection_name)
        return await super().list(collection_name, filter_dict, order_by)

    async def count(self, collection_name, filter_dict=None):
        self._check_read(collection_name)
        return await super().count(collection_name, filter_dict)

    async def create(self, collection_name, fields):
        self._check_write(collection_name)
        return await super().create(collection_name, fields)

    async def update(self, collection_name, doc_id, fields):
        self._check_write(collection_name)
        return await super().update(collection_name, doc_id, fields)

    async def delete(self, collection_name, doc_id):
        self._check_write(collection_name)
        return await super().delete(collection_name, doc_id)

    async def set_with_merge(self, collection_name, doc_id, fields):
        self._check_write(collection_name)
        return await super().set_with_merge(collection_name, doc_id, fields)


def always(answer):
    return lambda _prompt: answer
