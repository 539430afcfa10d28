# deployer/utils/vm_xml_generator.py
from pathlib import Path

# 템플릿 파일은 패키지 안의 templates 디렉터리에 함께 배포됩니다.
TEMPLATE_DIR = Path(__file__).resolve().parent / 'templates'
VM_TEMPLATE_PATH = TEMPLATE_DIR / 'vm_template.xml'
DISK_TEMPLATE_PATH = TEMPLATE_DIR / 'disk_template.xml'


def get_xml_template(template_path):
    """템플릿 파일을 읽어 XML 내용을 반환합니다."""
    try:
        with open(template_path, 'r') as f:
            return f.read()
    except FileNotFoundError:
        # 파일이 없으면 명확한 에러 메시지 반환
        raise Exception(f"XML template file not found at {template_path}.")


# 템플릿 내용을 한 번만 읽어와서 저장
VM_XML_TEMPLATE = get_xml_template(VM_TEMPLATE_PATH)
DISK_XML_TEMPLATE = get_xml_template(DISK_TEMPLATE_PATH)


def generate_vm_xml(vm_name, vm_uuid, cpu_count, ram_mb, image_filepath, agent_id="", network_name="default"):
    """
    템플릿에 VM 스펙을 채워 넣어 libvirt 도메인 XML을 생성합니다.
    """
    # 메모리는 KiB 단위로 변환
    ram_kib = ram_mb * 1024

    return VM_XML_TEMPLATE.format(
        vm_name=vm_name,
        vm_uuid=vm_uuid,
        agent_id=agent_id,
        cpu_count=cpu_count,
        ram_kib=ram_kib,
        image_filepath=image_filepath,
        network_name=network_name,
    )


def generate_disk_xml(disk_cid, disk_filepath, target_dev):
    """
    영구 디스크를 도메인에 연결(attach)하기 위한 디스크 장치 XML을 생성합니다.
    serial에 디스크 CID를 넣어 VM 내부 에이전트가 디스크를 식별할 수 있게 합니다.
    """
    return DISK_XML_TEMPLATE.format(
        disk_cid=disk_cid,
        disk_filepath=disk_filepath,
        target_dev=target_dev,
    )
