"""
Type aliases for directory data structures.
"""

#: attribute name -> raw values, in server order
AttributeMap = dict[str, list[bytes]]
#: DN -> attribute map
DirectoryEntries = dict[str, AttributeMap]
#: a single ``(dn, attrs)`` result as returned by python-ldap
LDAPData = tuple[str, AttributeMap]
#: a DN broken into ``(attribute, value)`` pairs, most specific first
ExplodedDN = list[tuple[str, str]]
ModifyModListEntry = tuple[int, str, list[bytes] | None]
ModifyModList = list[ModifyModListEntry]
