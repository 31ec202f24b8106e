import re

from engine.errors import ModelLoadError

ROOT_SECTIONS = ('Model', 'Library', 'Subsystem')


def parse_mdl(filepath):
    """Read a text .mdl file into a nested diagram description."""
    try:
        with open(filepath, 'r', encoding='utf-8', errors='ignore') as f:
            content = f.read()
    except OSError as e:
        raise ModelLoadError(f"Could not read {filepath}: {e}") from e

    content = content.replace('\r\n', '\n').replace('\r', '\n')
    tree = _parse_sections(content)

    root = next((s for s in tree['children'] if s['name'] in ROOT_SECTIONS), None)
    if root is None:
        raise ModelLoadError(f"No Model or Library section in {filepath}")

    system = _first(root, 'System')
    if system is None:
        raise ModelLoadError(f"Model section in {filepath} has no System")

    return {
        'name': root['params'].get('Name', ''),
        'kind': 'library' if root['name'] == 'Library' else root['name'].lower(),
        'system': _system(system),
    }


def _parse_sections(content):
    # Line oriented: "Key value", "Section {" and "}"
    top = {'name': '', 'params': {}, 'children': []}
    stack = [top]
    last_key = None

    for raw in content.split('\n'):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue

        if line.endswith('{') and not line.startswith('"'):
            section = {'name': line[:-1].strip(), 'params': {}, 'children': []}
            stack[-1]['children'].append(section)
            stack.append(section)
            last_key = None
        elif line == '}':
            if len(stack) > 1:
                stack.pop()
            last_key = None
        elif line.startswith('"') and last_key:
            # Continuation of a quoted value split across lines
            stack[-1]['params'][last_key] += _unquote(line)
        else:
            parts = line.split(None, 1)
            if len(parts) == 2:
                last_key = parts[0]
                stack[-1]['params'][last_key] = _unquote(parts[1])

    return top


def _system(section):
    blocks = [_block(b) for b in section['children'] if b['name'] == 'Block']

    lines = []
    for ls in section['children']:
        if ls['name'] != 'Line':
            continue
        line = _line(ls)
        if line is not None:
            lines.append(line)

    return {
        'name': section['params'].get('Name', ''),
        'blocks': blocks,
        'lines': lines,
    }


def _block(section):
    params = dict(section['params'])
    block_type = params.pop('BlockType', 'Unknown')
    name = params.pop('Name', '')
    sid = params.pop('SID', '')

    child = _first(section, 'System')

    return {
        'type': block_type,
        'name': name,
        'sid': sid,
        'position': _vector(params.pop('Position', None)),
        'ports': _ports(params.pop('Ports', None)),
        'params': params,
        'system': _system(child) if child is not None else None,
    }


def _line(section):
    src = section['params'].get('SrcBlock')
    if not src:
        return None

    dsts = []
    _collect_destinations(section, dsts)
    return {
        'src': (src, _int(section['params'].get('SrcPort'))),
        'dsts': dsts,
    }


def _collect_destinations(section, dsts):
    dst = section['params'].get('DstBlock')
    if dst:
        dsts.append((dst, _int(section['params'].get('DstPort'))))

    # Branches nest arbitrarily deep
    for branch in section['children']:
        if branch['name'] == 'Branch':
            _collect_destinations(branch, dsts)


def _first(section, name):
    for child in section['children']:
        if child['name'] == name:
            return child
    return None


def _unquote(value):
    value = value.strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        value = value[1:-1]
    return value.replace('\\"', '"')


def _vector(text):
    if not text:
        return None
    return [float(n) for n in re.findall(r"-?\d+(?:\.\d+)?", text)]


def _ports(text):
    nums = _vector(text)
    if nums is None:
        return None
    # Trailing entries (enable, trigger, ...) are not data ports
    nums = (nums + [0, 0])[:2]
    return int(nums[0]), int(nums[1])


def _int(value):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        # Non-numeric ports are enable/trigger/state; treat as unknown
        return 0
