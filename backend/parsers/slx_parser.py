import re
import zipfile
import xml.etree.ElementTree as ET

from engine.errors import ModelLoadError

LEGACY_ROOT = 'simulink/blockdiagram.xml'
SYSTEMS_DIR = 'simulink/systems/'
ROOT_SYSTEM = SYSTEMS_DIR + 'system_root.xml'

ENDPOINT_RE = re.compile(r'^\s*([^#]+)#(\w+):(\d+)\s*$')


def parse_slx(filepath):
    """Read a zipped .slx archive into a nested diagram description."""
    try:
        with zipfile.ZipFile(filepath, 'r') as z:
            names = set(z.namelist())
            if LEGACY_ROOT not in names:
                raise ModelLoadError(f"{filepath} has no {LEGACY_ROOT}")

            diagram = _fromstring(z.read(LEGACY_ROOT), LEGACY_ROOT)
            model = _model_element(diagram)
            if model is None:
                raise ModelLoadError(f"{filepath} describes no Model or Library")

            def load_ref(ref):
                member = f'{SYSTEMS_DIR}{ref}.xml'
                if member not in names:
                    raise ModelLoadError(f"{filepath} is missing {member}")
                return _fromstring(z.read(member), member)

            system = model.find('System')
            if system is None and ROOT_SYSTEM in names:
                system = _fromstring(z.read(ROOT_SYSTEM), ROOT_SYSTEM)
            if system is None:
                raise ModelLoadError(f"{filepath} has no root system")

            return {
                'name': model.get('Name', ''),
                'kind': model.tag.lower(),
                'system': _system(system, load_ref),
            }

    except zipfile.BadZipFile:
        raise ModelLoadError("Invalid .slx file — file may be corrupted.")


def _fromstring(content, member):
    try:
        return ET.fromstring(content)
    except ET.ParseError as e:
        raise ModelLoadError(f"Malformed XML in {member}: {e}") from e


def _system(elem, load_ref):
    # <System Ref="system_N"/> points at a separate archive member
    if elem.get('Ref'):
        elem = load_ref(elem.get('Ref'))

    blocks = [_block(b, load_ref) for b in elem.findall('Block')]
    sid_to_name = {b['sid']: b['name'] for b in blocks if b['sid']}

    lines = []
    for le in elem.findall('Line'):
        line = _line(le, sid_to_name)
        if line is not None:
            lines.append(line)

    return {
        'name': _param(elem, 'Name') or '',
        'blocks': blocks,
        'lines': lines,
    }


def _block(elem, load_ref):
    params = {}
    for p in elem.findall('P'):
        pname = p.get('Name', '')
        if pname:
            params[pname] = (p.text or '').strip()

    position = params.pop('Position', None)
    ports = params.pop('Ports', None)

    child = elem.find('System')

    return {
        'type': elem.get('BlockType', 'Unknown'),
        'name': elem.get('Name', ''),
        'sid': elem.get('SID', ''),
        'position': _vector(position),
        'ports': _ports(ports),
        'params': params,
        'system': _system(child, load_ref) if child is not None else None,
    }


def _line(elem, sid_to_name):
    src = _endpoint(_param(elem, 'Src'), sid_to_name)
    if src is None:
        return None

    dsts = []
    _collect_destinations(elem, sid_to_name, dsts)
    return {'src': src, 'dsts': dsts}


def _collect_destinations(elem, sid_to_name, dsts):
    dst = _endpoint(_param(elem, 'Dst'), sid_to_name)
    if dst is not None:
        dsts.append(dst)
    for branch in elem.findall('Branch'):
        _collect_destinations(branch, sid_to_name, dsts)


def _endpoint(text, sid_to_name):
    # "12#out:1" -> (block name, 1); enable/trigger ports map to index 0
    if not text:
        return None
    m = ENDPOINT_RE.match(text)
    if not m:
        return None
    sid, kind, index = m.groups()
    name = sid_to_name.get(sid)
    if name is None:
        return None
    return name, int(index) if kind in ('in', 'out') else 0


def _param(elem, name):
    p = elem.find(f'P[@Name="{name}"]')
    return p.text.strip() if p is not None and p.text else None


def _vector(text):
    if not text:
        return None
    try:
        return [float(c.strip()) for c in text.strip('[]').split(',') if c.strip()]
    except ValueError:
        return None


def _ports(text):
    nums = _vector(text)
    if nums is None:
        return None
    nums = (nums + [0, 0])[:2]
    return int(nums[0]), int(nums[1])


def _model_element(root):
    for tag in ('Model', 'Library', 'Subsystem'):
        if root.tag == tag:
            return root
        found = root.find(f'.//{tag}')
        if found is not None:
            return found
    return None
