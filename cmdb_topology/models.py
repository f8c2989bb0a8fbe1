"""ORM models for hosts, the business topology and host placement."""

from __future__ import annotations

from sqlalchemy import BigInteger, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import constants as c
from .database import Base


class Host(Base):
    __tablename__ = c.TABLE_HOST

    bk_host_id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    bk_host_innerip: Mapped[str] = mapped_column(String(64), default="")
    bk_host_outerip: Mapped[str] = mapped_column(String(64), default="")
    bk_host_name: Mapped[str] = mapped_column(String(256), default="")
    bk_os_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    bk_cloud_id: Mapped[int] = mapped_column(BigInteger, default=0)
    operator: Mapped[str | None] = mapped_column(String(256), nullable=True)
    bk_comment: Mapped[str | None] = mapped_column(Text, nullable=True)


class Plat(Base):
    __tablename__ = c.TABLE_PLAT

    bk_cloud_id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    bk_cloud_name: Mapped[str] = mapped_column(String(128), nullable=False)


class SetTemplate(Base):
    __tablename__ = c.TABLE_SET_TEMPLATE

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    bk_biz_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # legacy column removed by upgrade y3.9.202106301723
    version: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


class Set(Base):
    __tablename__ = c.TABLE_SET

    bk_set_id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    bk_set_name: Mapped[str] = mapped_column(String(256), nullable=False)
    bk_biz_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    set_template_id: Mapped[int] = mapped_column(BigInteger, default=0)
    set_template_version: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


class Module(Base):
    __tablename__ = c.TABLE_MODULE

    bk_module_id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    bk_module_name: Mapped[str] = mapped_column(String(256), nullable=False)
    bk_set_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    bk_biz_id: Mapped[int] = mapped_column(BigInteger, nullable=False)


class ModuleHostConfig(Base):
    """One row per (host, set, module) placement."""

    __tablename__ = c.TABLE_MODULE_HOST_CONFIG

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bk_biz_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    bk_set_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    bk_module_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    bk_host_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
