import re
import xml.etree.ElementTree as ET

# Characters that XML 1.0 does not allow, not even escaped
INVALID_XML_CHARS = re.compile(r"[^\t\n\r\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


def _append(parent, name, value):
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _append(parent, name, item)
        return
    element = ET.SubElement(parent, name)
    _fill(element, value)


def _fill(element, value):
    if isinstance(value, dict):
        for key, child in value.items():
            _append(element, str(key), child)
    elif isinstance(value, bool):
        element.text = "true" if value else "false"
    else:
        element.text = INVALID_XML_CHARS.sub("", str(value))


def to_xml(root: str, data) -> str:
    """
    Serialize plain data (dicts, lists, scalars) as an XML document.

    Dict keys become child elements, list values become repeated elements
    with the key's name, and None values are left out:

        to_xml("quizzes", {"quiz": [{"id": 1}, {"id": 2}]})
        -> <quizzes><quiz><id>1</id></quiz><quiz><id>2</id></quiz></quizzes>
    """
    element = ET.Element(root)
    _fill(element, data)
    return ET.tostring(element, encoding="utf-8", xml_declaration=True).decode("utf-8")
