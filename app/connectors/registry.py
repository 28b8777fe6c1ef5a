"""
模块职能：
- 连接器注册表：CONNECTOR 环境变量 -> ConnectorClass
- panel 依赖 Playwright，按需导入，example 不需要浏览器
"""
import os
from typing import Type
from app.connectors.base import BaseConnector

CONNECTOR = os.getenv("CONNECTOR", "panel")


def get_connector(name: str = None) -> Type[BaseConnector]:
    name = name or CONNECTOR
    if name == "example":
        from app.connectors.example_site.client import ExampleConnector
        return ExampleConnector
    if name == "panel":
        from app.connectors.panel_site.client import PanelConnector
        return PanelConnector
    raise KeyError(f"unknown connector: {name}")
