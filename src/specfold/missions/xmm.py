"""XMM-Newton 数据集封装

`XmmData` 在 `SpectralDataset` 之上附加观测元数据（设备、观测号、曝光号、目标名），
其余操作全部委托给内部数据集。

English
-------
Mission wrapper carrying XMM-Newton observation metadata.
"""

from __future__ import annotations

from typing import Mapping, Optional

from ..core.datasets import DatasetWrapper, SpectralDataset

__all__ = ["XmmNewtonDevice", "XmmEPIC", "XmmData"]


class XmmNewtonDevice:
    """Base tag for XMM-Newton instruments."""

    name = "XMM-Newton"

    def __repr__(self) -> str:
        return self.name


class XmmEPIC(XmmNewtonDevice):
    """European Photon Imaging Camera (MOS1/MOS2/PN)."""

    name = "EPIC"


class XmmData(DatasetWrapper):
    """XMM-Newton 观测数据集

    参数
    ----
    device : XmmNewtonDevice
        探测器标签
    data : SpectralDataset
        内部数据集
    observation_id, exposure_id, object : str
        来自 FITS 头的 OBS_ID / EXP_ID / OBJECT
    """

    def __init__(
        self,
        device: XmmNewtonDevice,
        data: SpectralDataset,
        observation_id: str = "[no observation id]",
        exposure_id: str = "[no exposure id]",
        object: str = "[no object]",
    ):
        super().__init__(data)
        self.device = device
        self.observation_id = observation_id
        self.exposure_id = exposure_id
        self.object = object

    @classmethod
    def from_header(
        cls,
        device: XmmNewtonDevice,
        data: SpectralDataset,
        header: Optional[Mapping[str, object]] = None,
    ) -> 'XmmData':
        """从已解析的 FITS 头构造；缺失的关键字使用占位值。"""
        header = header or {}
        return cls(
            device,
            data,
            observation_id=str(header.get("OBS_ID", "[no observation id]")),
            exposure_id=str(header.get("EXP_ID", "[no exposure id]")),
            object=str(header.get("OBJECT", "[no object]")),
        )

    def make_label(self) -> str:
        return self.observation_id

    def __repr__(self) -> str:
        return f"XmmData[dev={self.device!r},obs_id={self.observation_id}]"

    def describe(self) -> str:
        head = [
            f"XmmData for {self.object}",
            f"  . Device              : {self.device!r}",
            f"  . Observation ID      : {self.observation_id}",
            f"  . Exposure ID         : {self.exposure_id}",
        ]
        return "\n".join(head) + "\n" + self.data.describe()
