"""The "5 Ranks" storage recommendations.

A second, role-oriented view of the available disks: which disk holds apps,
which holds data, which holds backups. Two-disk hosts get the five ranks
(Hybrid, Speed Demon, Mirror, Data Hoarder, Kamikaze); single and
multi-disk hosts get their own short lists.
"""
from typing import List, Optional

from servctl.models.recommendation import (
    ClassificationResult,
    DiskAssignment,
    DiskScenario,
    StorageRank,
    StorageRecommendation,
)

APPS_MOUNT = "/mnt/apps"
DATA_MOUNT = "/mnt/data"
BACKUP_MOUNT = "/mnt/backup"


def _apps(disk) -> DiskAssignment:
    return DiskAssignment(disk=disk, role="apps", label="servctl-apps", mount=APPS_MOUNT)


def _data(disk) -> DiskAssignment:
    return DiskAssignment(disk=disk, role="data", label="servctl-data", mount=DATA_MOUNT)


def _backup(disk) -> DiskAssignment:
    return DiskAssignment(disk=disk, role="backup", label="servctl-backup", mount=BACKUP_MOUNT)


def _raid(disk, role: str = "raid", label: str = "servctl-raid") -> DiskAssignment:
    return DiskAssignment(disk=disk, role=role, label=label, mount=DATA_MOUNT)


def single_disk_recommendations(result: ClassificationResult) -> List[StorageRecommendation]:
    rec = StorageRecommendation(
        rank=StorageRank.HYBRID,
        name="Single Disk Configuration",
        description="All data stored on one disk alongside the OS.",
        pros=["Simple setup", "Maximum usable space"],
        cons=["No redundancy - disk failure = data loss", "No performance separation"],
        warning="⚠️ SINGLE POINT OF FAILURE: Consider adding a backup disk!",
        is_default=True,
    )
    if result.available:
        rec.assignments = [_data(result.available[0])]
    return [rec]


def two_disk_recommendations(result: ClassificationResult) -> List[StorageRecommendation]:
    recs = []
    disks = result.available
    fast = result.fast_disks
    hdds = result.hdds
    hybrid = bool(fast) and bool(hdds)

    if hybrid:
        recs.append(StorageRecommendation(
            rank=StorageRank.HYBRID,
            name="Hybrid: SSD + HDD",
            description="SSD for OS/Apps/Databases, HDD for bulk media storage.",
            pros=["Best of both worlds", "Fast access for critical data", "Cost-effective bulk storage"],
            cons=["No redundancy", "HDD failure loses media files"],
            is_default=True,
            assignments=[_apps(fast[0]), _data(hdds[0])],
        ))

    if len(fast) >= 2:
        recs.append(StorageRecommendation(
            rank=StorageRank.SPEED_DEMON,
            name="Speed Demon: Dual SSD",
            description="One SSD for OS, another for active databases.",
            pros=["Maximum I/O performance", "Parallel access for DBs", "Low latency for all operations"],
            cons=["No redundancy", "Limited bulk storage capacity", "More expensive per GB"],
            is_default=not hybrid,
            assignments=[_apps(fast[0]), _data(fast[1])],
        ))
        recs.append(StorageRecommendation(
            rank=StorageRank.MIRROR,
            name="Mirror: SSD RAID 1",
            description="Two SSDs in RAID 1 for redundancy.",
            pros=["Data redundancy", "Survives single disk failure", "Fast read performance"],
            cons=["50% storage capacity loss", "Slower writes than single disk", "More complex setup"],
            assignments=[_raid(fast[0]), _raid(fast[1])],
        ))

    if len(hdds) >= 2:
        recs.append(StorageRecommendation(
            rank=StorageRank.DATA_HOARDER,
            name="Data Hoarder: HDD RAID 1",
            description="Two HDDs in RAID 1 for redundant bulk storage.",
            pros=["Data redundancy", "Cost-effective for large storage", "Survives single disk failure"],
            cons=["Slower than SSD", "50% storage capacity loss"],
            warning="⚠️ PERFORMANCE WARNING: HDD RAID 1 will be slower than SSD configurations.",
            assignments=[_raid(hdds[0]), _raid(hdds[1])],
        ))

    if len(disks) >= 2:
        recs.append(StorageRecommendation(
            rank=StorageRank.KAMIKAZE,
            name="Kamikaze: RAID 0",
            description="Stripe data across disks for maximum speed. NO REDUNDANCY!",
            pros=["Maximum combined capacity", "Fastest write speeds", "Best for temporary/replaceable data"],
            cons=["ANY disk failure = TOTAL DATA LOSS", "Not suitable for important data",
                  "Higher failure probability"],
            warning=("🚨 CRITICAL RISK: RAID 0 offers NO redundancy. "
                     "Disk failure will result in COMPLETE data loss!"),
            assignments=[
                _raid(disks[0], role="raid0", label="servctl-stripe"),
                _raid(disks[1], role="raid0", label="servctl-stripe"),
            ],
        ))

    if not recs and len(disks) >= 2:
        recs.append(StorageRecommendation(
            rank=StorageRank.HYBRID,
            name="Standard: Separate Storage",
            description="Use disks for separate purposes.",
            pros=["Simple configuration", "Easy to manage"],
            cons=["No redundancy"],
            is_default=True,
            assignments=[_apps(disks[0]), _data(disks[1])],
        ))

    return recs


def multi_disk_recommendations(result: ClassificationResult) -> List[StorageRecommendation]:
    recs = []
    disks = result.available
    fast = result.fast_disks
    hdds = result.hdds

    if fast and len(hdds) >= 2:
        recs.append(StorageRecommendation(
            rank=StorageRank.HYBRID,
            name="Optimal: SSD + HDD + Backup",
            description="SSD for apps/DBs, HDD for data, second HDD for backups.",
            pros=["Fast app performance", "Dedicated backup disk", "3-2-1 backup capability", "Cost-effective"],
            cons=["Backup requires manual sync", "HDDs are slower than SSDs"],
            is_default=True,
            assignments=[_apps(fast[0]), _data(hdds[0]), _backup(hdds[1])],
        ))

    if len(fast) >= 2 and hdds:
        recs.append(StorageRecommendation(
            rank=StorageRank.SPEED_DEMON,
            name="Performance: Dual SSD + Backup",
            description="SSDs for all active data, HDD for backups.",
            pros=["Maximum performance", "Silent operation", "Dedicated backup"],
            cons=["More expensive", "Less bulk storage"],
            assignments=[_apps(fast[0]), _data(fast[1]), _backup(hdds[0])],
        ))

    if len(hdds) >= 2 and fast:
        recs.append(StorageRecommendation(
            rank=StorageRank.DATA_HOARDER,
            name="Massive Storage: RAID + SSD Cache",
            description="HDD RAID for bulk storage, SSD for apps/cache.",
            pros=["Maximum storage with redundancy", "Fast app performance", "Protects against HDD failure"],
            cons=["Complex setup", "Slower bulk access"],
            assignments=[_apps(fast[0]), _raid(hdds[0]), _raid(hdds[1])],
        ))

    if not recs and len(disks) >= 3:
        recs.append(StorageRecommendation(
            rank=StorageRank.HYBRID,
            name="Standard: Apps + Data + Backup",
            description="Separate disks for different purposes.",
            is_default=True,
            assignments=[_apps(disks[0]), _data(disks[1]), _backup(disks[2])],
        ))

    return recs


def normalize_defaults(recs: List[StorageRecommendation]) -> List[StorageRecommendation]:
    """Leave exactly one default: the first flagged one, else the first entry."""
    if not recs:
        return recs
    seen = False
    for rec in recs:
        if rec.is_default and not seen:
            seen = True
        else:
            rec.is_default = False
    if not seen:
        recs[0].is_default = True
    return recs


def build_recommendations(result: ClassificationResult) -> List[StorageRecommendation]:
    builders = {
        DiskScenario.SINGLE_DISK: single_disk_recommendations,
        DiskScenario.TWO_DISK: two_disk_recommendations,
        DiskScenario.MULTI_DISK: multi_disk_recommendations,
    }
    return normalize_defaults(builders[result.scenario](result))


def default_recommendation(recs: List[StorageRecommendation]) -> Optional[StorageRecommendation]:
    for rec in recs:
        if rec.is_default:
            return rec
    return recs[0] if recs else None
