################################################################################
#  Licensed to the Apache Software Foundation (ASF) under one
#  or more contributor license agreements.  See the NOTICE file
#  distributed with this work for additional information
#  regarding copyright ownership.  The ASF licenses this file
#  to you under the Apache License, Version 2.0 (the
#  "License"); you may not use this file except in compliance
#  with the License.  You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
# limitations under the License.
################################################################################

import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import (Column, ForeignKey, Integer, MetaData, String, Table,
                        UniqueConstraint, and_, create_engine, delete, insert,
                        select, update)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from lakecat.catalog.catalog import CommitResult
from lakecat.catalog.catalog_config import CatalogConfig
from lakecat.catalog.catalog_exception import (BackendUnavailableError,
                                               CatalogConnectionError,
                                               NamespaceAlreadyExistsError,
                                               NamespaceNotFoundError,
                                               TableNotFoundError)
from lakecat.catalog.metastore_catalog import MetastoreCatalog
from lakecat.common.identifier import TableIdentifier

METASTORE = MetaData()

DBS = Table(
    "DBS", METASTORE,
    Column("DB_ID", Integer, primary_key=True, autoincrement=True),
    Column("NAME", String(128), nullable=False, unique=True),
    Column("DB_LOCATION_URI", String(4000)),
)

DATABASE_PARAMS = Table(
    "DATABASE_PARAMS", METASTORE,
    Column("DB_ID", Integer, ForeignKey("DBS.DB_ID"), primary_key=True),
    Column("PARAM_KEY", String(180), primary_key=True),
    Column("PARAM_VALUE", String(4000)),
)

TBLS = Table(
    "TBLS", METASTORE,
    Column("TBL_ID", Integer, primary_key=True, autoincrement=True),
    Column("DB_ID", Integer, ForeignKey("DBS.DB_ID"), nullable=False),
    Column("TBL_NAME", String(256), nullable=False),
    Column("TBL_TYPE", String(128)),
    Column("CREATE_TIME", Integer),
    UniqueConstraint("DB_ID", "TBL_NAME", name="UNIQUETABLE"),
)

TABLE_PARAMS = Table(
    "TABLE_PARAMS", METASTORE,
    Column("TBL_ID", Integer, ForeignKey("TBLS.TBL_ID"), primary_key=True),
    Column("PARAM_KEY", String(256), primary_key=True),
    Column("PARAM_VALUE", String(4000)),
)

EXTERNAL_TABLE = "EXTERNAL_TABLE"


class HiveCatalog(MetastoreCatalog):
    """
    Catalog keeping table pointers in the relational database behind a Hive
    metastore, reached through SQLAlchemy (catalog.server-uri is a database
    URL). The pointer is the metadata_location table parameter; it is
    swapped by an UPDATE conditioned on the base location, so a concurrent
    writer turns the update into a zero-row update.

    Namespaces are single level and map to Hive databases.
    """

    def __init__(self, config: CatalogConfig):
        super().__init__(config)
        try:
            self.engine = create_engine(config.server_uri, pool_pre_ping=True)
            METASTORE.create_all(self.engine, checkfirst=True)
        except SQLAlchemyError as e:
            raise CatalogConnectionError(f"Cannot connect to the metastore database: {e}",
                                         self.catalog_type) from e

    @contextmanager
    def _sql_errors(self, identifier: Optional[TableIdentifier], action: str):
        try:
            yield
        except SQLAlchemyError as e:
            raise BackendUnavailableError(f"Metastore failure while {action}: {e}",
                                          self.catalog_type, identifier) from e

    def _database_name(self, namespace: Sequence[str]) -> str:
        if len(namespace) != 1:
            raise NamespaceNotFoundError(tuple(namespace), self.catalog_type)
        return namespace[0]

    def _db_id(self, conn, namespace: Sequence[str]) -> Optional[int]:
        name = self._database_name(namespace)
        return conn.execute(select(DBS.c.DB_ID).where(DBS.c.NAME == name)).scalar()

    def _table_id(self, conn, identifier: TableIdentifier) -> Optional[int]:
        if len(identifier.namespace) != 1:
            return None
        stmt = select(TBLS.c.TBL_ID).select_from(TBLS.join(DBS, TBLS.c.DB_ID == DBS.c.DB_ID)).where(
            and_(DBS.c.NAME == identifier.namespace[0], TBLS.c.TBL_NAME == identifier.name))
        return conn.execute(stmt).scalar()

    @staticmethod
    def _param(conn, tbl_id: int, key: str) -> Optional[str]:
        return conn.execute(select(TABLE_PARAMS.c.PARAM_VALUE).where(
            and_(TABLE_PARAMS.c.TBL_ID == tbl_id, TABLE_PARAMS.c.PARAM_KEY == key))).scalar()

    @staticmethod
    def _set_param(conn, tbl_id: int, key: str, value: str):
        conn.execute(delete(TABLE_PARAMS).where(
            and_(TABLE_PARAMS.c.TBL_ID == tbl_id, TABLE_PARAMS.c.PARAM_KEY == key)))
        conn.execute(insert(TABLE_PARAMS).values(TBL_ID=tbl_id, PARAM_KEY=key, PARAM_VALUE=value))

    def _is_iceberg_table(self, conn, tbl_id: int) -> bool:
        table_type = self._param(conn, tbl_id, self.TABLE_TYPE_PROP)
        return table_type is not None and table_type.upper() == self.ICEBERG_TABLE_TYPE

    def _load(self, conn, identifier: TableIdentifier) -> Optional[str]:
        tbl_id = self._table_id(conn, identifier)
        if tbl_id is None or not self._is_iceberg_table(conn, tbl_id):
            return None
        return self._param(conn, tbl_id, self.METADATA_LOCATION_PROP)

    def load_metadata_location(self, identifier: TableIdentifier) -> Optional[str]:
        with self._sql_errors(identifier, "loading the table pointer"):
            with self.engine.connect() as conn:
                return self._load(conn, identifier)

    def swap_metadata_location(self, identifier: TableIdentifier, base_location: Optional[str],
                               new_location: str, metadata: Dict[str, Any]) -> CommitResult:
        with self._sql_errors(identifier, "committing the table pointer"):
            try:
                with self.engine.begin() as conn:
                    if base_location is None:
                        return self._create(conn, identifier, new_location)
                    return self._swap(conn, identifier, base_location, new_location)
            except IntegrityError:
                # lost a race to create the same table
                return CommitResult(False, self.load_metadata_location(identifier))

    def _create(self, conn, identifier: TableIdentifier, new_location: str) -> CommitResult:
        if self._table_id(conn, identifier) is not None:
            return CommitResult(False, self._load(conn, identifier))
        db_id = self._db_id(conn, identifier.namespace)
        if db_id is None:
            raise NamespaceNotFoundError(identifier.namespace, self.catalog_type)
        result = conn.execute(insert(TBLS).values(
            DB_ID=db_id, TBL_NAME=identifier.name, TBL_TYPE=EXTERNAL_TABLE, CREATE_TIME=int(time.time())))
        tbl_id = result.inserted_primary_key[0]
        conn.execute(insert(TABLE_PARAMS), [
            {"TBL_ID": tbl_id, "PARAM_KEY": self.TABLE_TYPE_PROP, "PARAM_VALUE": self.ICEBERG_TABLE_TYPE},
            {"TBL_ID": tbl_id, "PARAM_KEY": self.METADATA_LOCATION_PROP, "PARAM_VALUE": new_location},
            {"TBL_ID": tbl_id, "PARAM_KEY": "EXTERNAL", "PARAM_VALUE": "TRUE"},
        ])
        return CommitResult(True, new_location)

    def _swap(self, conn, identifier: TableIdentifier, base_location: str, new_location: str) -> CommitResult:
        tbl_id = self._table_id(conn, identifier)
        if tbl_id is None:
            return CommitResult(False, None)
        swapped = conn.execute(update(TABLE_PARAMS).where(and_(
            TABLE_PARAMS.c.TBL_ID == tbl_id,
            TABLE_PARAMS.c.PARAM_KEY == self.METADATA_LOCATION_PROP,
            TABLE_PARAMS.c.PARAM_VALUE == base_location,
        )).values(PARAM_VALUE=new_location)).rowcount
        if swapped == 0:
            return CommitResult(False, self._param(conn, tbl_id, self.METADATA_LOCATION_PROP))
        self._set_param(conn, tbl_id, self.PREVIOUS_METADATA_LOCATION_PROP, base_location)
        return CommitResult(True, new_location)

    def list_namespace(self, namespace: Sequence[str]) -> List[TableIdentifier]:
        namespace = tuple(namespace)
        with self._sql_errors(None, f"listing database {'.'.join(namespace)}"):
            with self.engine.connect() as conn:
                db_id = self._db_id(conn, namespace)
                if db_id is None:
                    raise NamespaceNotFoundError(namespace, self.catalog_type)
                stmt = select(TBLS.c.TBL_NAME).select_from(
                    TBLS.join(TABLE_PARAMS, TBLS.c.TBL_ID == TABLE_PARAMS.c.TBL_ID)).where(and_(
                        TBLS.c.DB_ID == db_id,
                        TABLE_PARAMS.c.PARAM_KEY == self.TABLE_TYPE_PROP,
                        TABLE_PARAMS.c.PARAM_VALUE == self.ICEBERG_TABLE_TYPE,
                    )).order_by(TBLS.c.TBL_NAME)
                return [TableIdentifier(namespace, name) for name in conn.execute(stmt).scalars()]

    def create_namespace(self, namespace: Sequence[str], properties: Optional[Dict[str, str]] = None):
        namespace = tuple(namespace)
        # databases are single level, so a deeper namespace can never exist
        name = self._database_name(namespace)
        location = self.location_provider.namespace_location(namespace)
        with self._sql_errors(None, f"creating database {name}"):
            try:
                with self.engine.begin() as conn:
                    result = conn.execute(insert(DBS).values(NAME=name, DB_LOCATION_URI=location))
                    db_id = result.inserted_primary_key[0]
                    if properties:
                        conn.execute(insert(DATABASE_PARAMS), [
                            {"DB_ID": db_id, "PARAM_KEY": k, "PARAM_VALUE": v} for k, v in properties.items()])
            except IntegrityError as e:
                raise NamespaceAlreadyExistsError(namespace, self.catalog_type) from e

    def drop_table(self, identifier: TableIdentifier):
        with self._sql_errors(identifier, "dropping the table"):
            with self.engine.begin() as conn:
                tbl_id = self._table_id(conn, identifier)
                if tbl_id is None or not self._is_iceberg_table(conn, tbl_id):
                    raise TableNotFoundError(identifier, self.catalog_type)
                conn.execute(delete(TABLE_PARAMS).where(TABLE_PARAMS.c.TBL_ID == tbl_id))
                conn.execute(delete(TBLS).where(TBLS.c.TBL_ID == tbl_id))
        self.logger.info(f"Dropped table {identifier}")

    def close(self):
        self.engine.dispose()
