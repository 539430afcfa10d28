# deployer/clients/libvirt_cloud.py
import logging
import os
import string
import subprocess
import uuid
import xml.etree.ElementTree as ElementTree

import libvirt

from deployer.clients.cloud import ICloud
from deployer.services.exceptions import DiskNotFoundError, UnknownCloudError, VmNotFoundError
from deployer.utils.vm_xml_generator import generate_disk_xml, generate_vm_xml

logger = logging.getLogger(__name__)

# vda는 루트 디스크가 사용합니다.
PERSISTENT_DISK_TARGETS = [f"vd{letter}" for letter in string.ascii_lowercase[1:]]


def _is_no_domain(error: libvirt.libvirtError) -> bool:
    return error.get_error_code() == libvirt.VIR_ERR_NO_DOMAIN


class LibvirtCloud(ICloud):
    """
    로컬 KVM 하이퍼바이저를 CPI처럼 다루는 클라우드 클라이언트.

    VM CID는 libvirt 도메인 UUID이고, 루트 디스크는 스템셀 이미지를 backing file로
    하는 qcow2 오버레이입니다. 영구 디스크는 disk_dir 아래의 qcow2 파일이며
    디스크 CID는 `disk-<uuid>` 형식입니다.
    """

    def __init__(self, uri="qemu:///system", image_base_dir="/var/lib/libvirt/images", disk_dir=None):
        self.image_base_dir = image_base_dir
        self.disk_dir = disk_dir or os.path.join(image_base_dir, "persistent")
        try:
            self.conn = libvirt.open(uri)
        except libvirt.libvirtError as e:
            raise ConnectionError(f"Failed to open connection to the hypervisor at '{uri}'.") from e

    def has_vm(self, vm_cid):
        try:
            self.conn.lookupByUUIDString(vm_cid)
            return True
        except libvirt.libvirtError as e:
            if _is_no_domain(e):
                return False
            raise UnknownCloudError("has_vm", str(e)) from e

    def create_vm(self, agent_id, stemcell_cid, cloud_properties, networks, env):
        """
        스템셀 이미지로 루트 디스크를 만들고 도메인을 정의한 뒤 시작합니다.

        실패 시 이미 만들어진 도메인과 루트 디스크를 정리하는 롤백 로직이 동작합니다.

        Args:
            agent_id: VM 내부 에이전트의 ID. 도메인 description에 기록됩니다.
            stemcell_cid: image_base_dir 안의 스템셀 이미지 파일 이름.
            cloud_properties: cpu, ram(MB), network 키를 읽습니다.
            networks: 네트워크 스펙. 이 백엔드는 libvirt 네트워크 하나만 사용합니다.
            env: VM 환경 정보. 이 백엔드에서는 사용하지 않습니다.

        Returns:
            새 VM의 CID (도메인 UUID).

        Raises:
            UnknownCloudError: 스템셀 이미지가 없거나 VM 생성 중 오류가 발생했을 때.
        """
        source_filepath = os.path.join(self.image_base_dir, stemcell_cid)
        if not os.path.exists(source_filepath):
            raise UnknownCloudError("create_vm", f"Stemcell image not found: {source_filepath}")

        vm_uuid = str(uuid.uuid4())
        vm_name = f"vm-{vm_uuid}"
        root_disk_filepath = None
        domain = None

        try:
            root_disk_filepath = self._create_root_disk(vm_name, source_filepath)
            xml_config = generate_vm_xml(
                vm_name,
                vm_uuid,
                cloud_properties.get("cpu", 1),
                cloud_properties.get("ram", 1024),
                root_disk_filepath,
                agent_id=agent_id,
                network_name=cloud_properties.get("network", "default"),
            )
            domain = self.conn.defineXML(xml_config)

            if domain.create() < 0:
                raise UnknownCloudError("create_vm", "Failed to start the VM after definition.")

            logger.info("Created VM '%s' from stemcell '%s'", vm_uuid, stemcell_cid)
            return vm_uuid

        except (libvirt.libvirtError, subprocess.CalledProcessError, UnknownCloudError) as e:
            logger.error("VM '%s' creation failed: %s. Starting rollback...", vm_name, e)
            self._rollback_vm_creation(domain, root_disk_filepath)
            if isinstance(e, UnknownCloudError):
                raise
            raise UnknownCloudError("create_vm", f"Failed to create VM '{vm_name}': {e}") from e

    def _rollback_vm_creation(self, domain, disk_path):
        if domain:
            try:
                if domain.isActive():
                    domain.destroy()
                domain.undefine()
            except libvirt.libvirtError as e:
                logger.warning("Rollback: failed to clean up libvirt domain: %s", e)

        if disk_path and os.path.exists(disk_path):
            os.remove(disk_path)

    def delete_vm(self, vm_cid):
        domain = self._lookup_domain("delete_vm", vm_cid)
        root_disk_filepath = self._root_disk_path(domain.name())

        try:
            if domain.isActive():
                domain.destroy()
            domain.undefine()
        except libvirt.libvirtError as e:
            raise UnknownCloudError("delete_vm", f"Failed to delete VM '{vm_cid}': {e}") from e

        if os.path.exists(root_disk_filepath):
            try:
                os.remove(root_disk_filepath)
            except OSError as e:
                raise UnknownCloudError("delete_vm", f"Failed to remove root disk '{root_disk_filepath}': {e}") from e
        logger.info("Deleted VM '%s'", vm_cid)

    def attach_disk(self, vm_cid, disk_cid):
        domain = self._lookup_domain("attach_disk", vm_cid)
        disk_filepath = self._existing_disk_path("attach_disk", disk_cid)

        devices = self._disk_devices(domain)
        if any(source == disk_filepath for source, _, _ in devices):
            logger.debug("Disk '%s' is already attached to VM '%s'", disk_cid, vm_cid)
            return

        used_targets = {target for _, target, _ in devices}
        free_targets = [target for target in PERSISTENT_DISK_TARGETS if target not in used_targets]
        if not free_targets:
            raise UnknownCloudError("attach_disk", f"No free disk target left on VM '{vm_cid}'")

        disk_xml = generate_disk_xml(disk_cid, disk_filepath, free_targets[0])
        try:
            domain.attachDeviceFlags(disk_xml, self._device_flags(domain))
        except libvirt.libvirtError as e:
            raise UnknownCloudError("attach_disk", f"Failed to attach disk '{disk_cid}': {e}") from e
        logger.info("Attached disk '%s' to VM '%s' as %s", disk_cid, vm_cid, free_targets[0])

    def detach_disk(self, vm_cid, disk_cid):
        domain = self._lookup_domain("detach_disk", vm_cid)
        disk_filepath = self._disk_path(disk_cid)

        for source, _, element in self._disk_devices(domain):
            if source == disk_filepath:
                device_xml = ElementTree.tostring(element, encoding="unicode")
                try:
                    domain.detachDeviceFlags(device_xml, self._device_flags(domain))
                except libvirt.libvirtError as e:
                    raise UnknownCloudError("detach_disk", f"Failed to detach disk '{disk_cid}': {e}") from e
                logger.info("Detached disk '%s' from VM '%s'", disk_cid, vm_cid)
                return

        raise DiskNotFoundError("detach_disk", f"Disk '{disk_cid}' is not attached to VM '{vm_cid}'")

    def create_disk(self, size, cloud_properties, vm_cid):
        disk_cid = f"disk-{uuid.uuid4()}"
        disk_filepath = self._disk_path(disk_cid)
        os.makedirs(self.disk_dir, exist_ok=True)

        try:
            command = ['qemu-img', 'create', '-f', 'qcow2', disk_filepath, str(size)]
            subprocess.run(command, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as e:
            raise UnknownCloudError("create_disk", f"Failed to create disk '{disk_cid}': {e.stderr}") from e
        except FileNotFoundError as e:
            raise UnknownCloudError("create_disk", "qemu-img command not found. Install qemu-utils.") from e

        logger.info("Created disk '%s' (%s bytes)", disk_cid, size)
        return disk_cid

    def delete_disk(self, disk_cid):
        disk_filepath = self._existing_disk_path("delete_disk", disk_cid)
        try:
            os.remove(disk_filepath)
        except OSError as e:
            raise UnknownCloudError("delete_disk", f"Failed to delete disk '{disk_cid}': {e}") from e
        logger.info("Deleted disk '%s'", disk_cid)

    def _create_root_disk(self, vm_name, source_filepath):
        target_filepath = self._root_disk_path(vm_name)
        command = [
            'qemu-img', 'create',
            '-f', 'qcow2',
            '-F', 'qcow2',
            '-b', source_filepath,
            target_filepath,
        ]
        subprocess.run(command, check=True, capture_output=True, text=True)
        return target_filepath

    def _root_disk_path(self, vm_name):
        return os.path.join(self.image_base_dir, f"{vm_name}.qcow2")

    def _disk_path(self, disk_cid):
        return os.path.join(self.disk_dir, f"{disk_cid}.qcow2")

    def _existing_disk_path(self, method, disk_cid):
        disk_filepath = self._disk_path(disk_cid)
        if not os.path.exists(disk_filepath):
            raise DiskNotFoundError(method, f"Disk '{disk_cid}' not found")
        return disk_filepath

    def _lookup_domain(self, method, vm_cid):
        try:
            return self.conn.lookupByUUIDString(vm_cid)
        except libvirt.libvirtError as e:
            if _is_no_domain(e):
                raise VmNotFoundError(method, f"VM '{vm_cid}' not found") from e
            raise UnknownCloudError(method, str(e)) from e

    def _disk_devices(self, domain):
        """도메인에 연결된 디스크 장치의 (source 파일, target dev, XML 요소) 목록."""
        root = ElementTree.fromstring(domain.XMLDesc(0))
        devices = []
        for disk in root.findall("./devices/disk"):
            source = disk.find("source")
            target = disk.find("target")
            devices.append((
                source.get("file") if source is not None else None,
                target.get("dev") if target is not None else None,
                disk,
            ))
        return devices

    def _device_flags(self, domain):
        flags = libvirt.VIR_DOMAIN_AFFECT_CONFIG
        if domain.isActive():
            flags |= libvirt.VIR_DOMAIN_AFFECT_LIVE
        return flags

    def close(self):
        if getattr(self, "conn", None):
            try:
                self.conn.close()
            except libvirt.libvirtError:
                pass  # 이미 닫힌 연결
            self.conn = None

    def __del__(self):
        self.close()
