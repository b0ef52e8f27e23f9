"""Resource descriptors parsed from Tencent Cloud API payloads."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Subnet:
    """A VPC subnet. Immutable once created."""

    subnet_id: str
    vpc_id: str
    cidr_block: str
    zone: str
    name: str = ""

    @classmethod
    def from_api(cls, d: dict) -> "Subnet":
        return cls(
            subnet_id=d["SubnetId"],
            vpc_id=d["VpcId"],
            cidr_block=d.get("CidrBlock", ""),
            zone=d.get("Zone", ""),
            name=d.get("SubnetName", ""),
        )


@dataclass(frozen=True)
class Instance:
    """A CVM instance as last described."""

    instance_id: str
    status: str
    zone: str = ""
    subnet_id: str = ""
    name: str = ""
    public_ips: tuple[str, ...] = ()
    private_ips: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, d: dict) -> "Instance":
        return cls(
            instance_id=d["InstanceId"],
            status=d.get("InstanceState", ""),
            zone=(d.get("Placement") or {}).get("Zone", ""),
            subnet_id=(d.get("VirtualPrivateCloud") or {}).get("SubnetId", ""),
            name=d.get("InstanceName", ""),
            public_ips=tuple(d.get("PublicIpAddresses") or ()),
            private_ips=tuple(d.get("PrivateIpAddresses") or ()),
        )


@dataclass(frozen=True)
class Snapshot:
    snapshot_id: str
    disk_usage: str
    disk_size: int


@dataclass(frozen=True)
class Image:
    """A CVM image and the snapshots backing its disks."""

    image_id: str
    name: str
    state: str = ""
    snapshots: tuple[Snapshot, ...] = ()

    @property
    def data_disk_snapshots(self) -> list[Snapshot]:
        return [s for s in self.snapshots if s.disk_usage == "DATA_DISK"]

    @classmethod
    def from_api(cls, d: dict) -> "Image":
        snapshots = tuple(
            Snapshot(
                snapshot_id=s["SnapshotId"],
                disk_usage=s.get("DiskUsage", ""),
                disk_size=int(s.get("DiskSize", 0)),
            )
            for s in d.get("SnapshotSet") or ()
        )
        return cls(
            image_id=d["ImageId"],
            name=d.get("ImageName", ""),
            state=d.get("ImageState", ""),
            snapshots=snapshots,
        )


@dataclass(frozen=True)
class DataDisk:
    """A data disk requested at instance creation."""

    disk_type: str
    disk_size: int
    snapshot_id: str = ""

    def to_api(self) -> dict:
        d = {"DiskType": self.disk_type, "DiskSize": self.disk_size}
        if self.snapshot_id:
            d["SnapshotId"] = self.snapshot_id
        return d


@dataclass(frozen=True)
class ZoneOffer:
    """One row of the zone/instance-type capacity table."""

    zone: str
    instance_type: str
    status: str

    @classmethod
    def from_api(cls, d: dict) -> "ZoneOffer":
        return cls(zone=d["Zone"], instance_type=d.get("InstanceType", ""), status=d.get("Status", ""))
