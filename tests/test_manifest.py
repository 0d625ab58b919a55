"""Tests for manifest parsing, ordering and validation."""

import pytest

from manifest import (
    DEFAULT_PRIORITY,
    ManifestFieldError,
    ManifestObject,
    ParseError,
    UnknownKindError,
    filter_objects,
    is_not_of_kind,
    is_of_kind,
    kind_priority,
    parse_objects,
    sort_by_kind,
    validate_kinds,
)

BUNDLE = """
apiVersion: v1
kind: Template
metadata:
  name: team
objects:
- kind: Service
  metadata:
    name: web
- kind: ResourceQuota
  metadata:
    name: quota
- kind: ConfigMap
  metadata:
    name: settings
    namespace: shared
- kind: ProjectRequest
  metadata:
    name: alice
- kind: LimitRange
  metadata:
    name: limits
"""


def _obj(kind, name='x'):
    return ManifestObject({'kind': kind, 'metadata': {'name': name}})


class TestParseObjects:
    """Tests for parse_objects()."""

    def test_template_members_from_objects(self):
        objects = parse_objects(BUNDLE)
        assert len(objects) == 5
        assert {o.kind for o in objects} == {
            'Service', 'ResourceQuota', 'ConfigMap', 'ProjectRequest', 'LimitRange',
        }

    def test_list_members_from_items(self):
        doc = "kind: List\nitems:\n- kind: Secret\n  metadata:\n    name: s1\n"
        objects = parse_objects(doc)
        assert [o.describe() for o in objects] == ['Secret/s1']

    def test_single_manifest(self):
        objects = parse_objects("kind: Service\nmetadata:\n  name: web\n")
        assert len(objects) == 1
        assert objects[0].name == 'web'

    def test_accepts_decoded_mapping(self):
        objects = parse_objects({'kind': 'Secret', 'metadata': {'name': 's'}}, 'ns1')
        assert objects[0].namespace == 'ns1'

    def test_sorted_by_priority(self):
        kinds = [o.kind for o in parse_objects(BUNDLE)]
        assert kinds == ['ProjectRequest', 'LimitRange', 'ResourceQuota', 'Service', 'ConfigMap']

    def test_injects_default_namespace(self):
        """Objects without a namespace get the default; declared ones keep theirs."""
        objects = {o.name: o for o in parse_objects(BUNDLE, 'alice')}
        assert objects['web'].namespace == 'alice'
        assert objects['quota'].namespace == 'alice'
        assert objects['settings'].namespace == 'shared'

    def test_creates_metadata_for_namespace(self):
        objects = parse_objects("kind: Secret\n", 'alice')
        assert objects[0].document['metadata'] == {'namespace': 'alice'}

    def test_empty_default_namespace_injects_nothing(self):
        objects = {o.name: o for o in parse_objects(BUNDLE, '')}
        assert not objects['web'].has_namespace

    def test_parse_twice_yields_equal_lists(self):
        assert parse_objects(BUNDLE, 'alice') == parse_objects(BUNDLE, 'alice')

    def test_malformed_yaml(self):
        with pytest.raises(ParseError):
            parse_objects("kind: [unclosed")

    def test_top_level_not_mapping(self):
        with pytest.raises(ParseError, match='mapping'):
            parse_objects("- a\n- b\n")

    def test_bundle_without_member_list(self):
        with pytest.raises(ParseError, match="'objects'"):
            parse_objects("kind: Template\nobjects: nope\n")

    def test_bundle_member_not_mapping(self):
        with pytest.raises(ParseError, match=r'items\[1\]'):
            parse_objects("kind: List\nitems:\n- kind: Secret\n- just-a-string\n")

    def test_parse_error_code(self):
        with pytest.raises(ParseError) as exc_info:
            parse_objects("[]")
        assert exc_info.value.code == 'E100'


class TestSortByKind:
    """Tests for sort_by_kind() stability and priorities."""

    def test_priority_kinds_first_in_fixed_order(self):
        objects = [
            _obj('Service', 'a'), _obj('ResourceQuota'), _obj('Route', 'b'),
            _obj('RoleBindingRestriction'), _obj('LimitRange'), _obj('ProjectRequest'),
            _obj('Secret', 'c'),
        ]
        result = [o.kind for o in sort_by_kind(objects)]
        assert result[:4] == ['ProjectRequest', 'RoleBindingRestriction', 'LimitRange', 'ResourceQuota']

    def test_other_kinds_keep_relative_order(self):
        objects = [
            _obj('Service', 'a'), _obj('ResourceQuota'), _obj('Route', 'b'),
            _obj('Secret', 'c'), _obj('ProjectRequest'), _obj('Service', 'd'),
        ]
        rest = [o.name for o in sort_by_kind(objects) if kind_priority(o) == DEFAULT_PRIORITY]
        assert rest == ['a', 'b', 'c', 'd']

    def test_same_priority_keeps_order(self):
        objects = [_obj('Namespace', 'n1'), _obj('ProjectRequest', 'p1'), _obj('Namespace', 'n2')]
        assert [o.name for o in sort_by_kind(objects)] == ['n1', 'p1', 'n2']

    def test_missing_kind_sorts_as_default(self):
        objects = [ManifestObject({'metadata': {'name': 'odd'}}), _obj('LimitRange', 'l')]
        assert [o.describe() for o in sort_by_kind(objects)] == ['LimitRange/l', '?/odd']


class TestAccessors:
    """Tests for ManifestObject typed accessors."""

    def test_reads_fields(self):
        obj = ManifestObject({
            'kind': 'Service',
            'metadata': {
                'name': 'web', 'namespace': 'alice',
                'labels': {'app': 'web'}, 'resourceVersion': '42',
            },
        })
        assert obj.kind == 'Service'
        assert obj.name == 'web'
        assert obj.namespace == 'alice'
        assert obj.labels == {'app': 'web'}
        assert obj.resource_version == '42'

    def test_missing_name_raises(self):
        with pytest.raises(ManifestFieldError) as exc_info:
            _ = ManifestObject({'kind': 'Service', 'metadata': {}}).name
        assert exc_info.value.path == 'metadata.name'

    def test_missing_metadata_raises(self):
        with pytest.raises(ManifestFieldError, match='metadata.namespace'):
            _ = ManifestObject({'kind': 'Service'}).namespace

    def test_wrong_shape_raises(self):
        with pytest.raises(ManifestFieldError, match='not a str'):
            _ = ManifestObject({'kind': 42}).kind

    def test_metadata_not_mapping_raises(self):
        with pytest.raises(ManifestFieldError):
            _ = ManifestObject({'kind': 'Service', 'metadata': 'web'}).name

    def test_missing_labels_raises(self):
        with pytest.raises(ManifestFieldError):
            _ = _obj('Service').labels

    def test_field_error_is_parse_error(self):
        assert issubclass(ManifestFieldError, ParseError)

    def test_has_namespace(self):
        assert not _obj('Service').has_namespace
        assert ManifestObject({'metadata': {'namespace': 'a'}}).has_namespace

    def test_set_resource_version(self):
        obj = _obj('Service')
        obj.set_resource_version('7')
        assert obj.resource_version == '7'

    def test_copy_is_independent(self):
        obj = _obj('Service', 'web')
        clone = obj.copy()
        clone.set_namespace('other')
        assert not obj.has_namespace
        assert clone != obj

    def test_non_mapping_document_rejected(self):
        with pytest.raises(ParseError):
            ManifestObject(['not', 'a', 'mapping'])

    def test_describe_never_raises(self):
        assert ManifestObject({}).describe() == '?/?'


class TestValidateKinds:
    """Tests for validate_kinds() pre-flight."""

    def test_known_kinds_pass(self):
        validate_kinds([_obj('ProjectRequest'), _obj('Service'), _obj('DeploymentConfig')])

    def test_lists_every_unknown_object(self):
        objects = [_obj('Service'), _obj('Widget', 'w1'), _obj('Gadget', 'g1')]
        with pytest.raises(UnknownKindError) as exc_info:
            validate_kinds(objects)
        error = exc_info.value
        assert error.code == 'E101'
        assert [o.name for o in error.objects] == ['w1', 'g1']
        assert 'Widget/w1' in str(error)
        assert 'Gadget/g1' in str(error)

    def test_verb_scoped(self):
        """ProjectRequest can be created but not deleted."""
        validate_kinds([_obj('ProjectRequest')], 'POST')
        with pytest.raises(UnknownKindError):
            validate_kinds([_obj('ProjectRequest')], 'DELETE')


class TestFilters:
    """Tests for kind filters."""

    def test_is_of_kind(self):
        objects = [_obj('Service', 'a'), _obj('Route', 'b'), _obj('Secret', 'c')]
        assert [o.name for o in filter_objects(objects, is_of_kind('Service', 'Secret'))] == ['a', 'c']

    def test_is_not_of_kind(self):
        objects = [_obj('Service', 'a'), _obj('Route', 'b')]
        assert [o.name for o in filter_objects(objects, is_not_of_kind('Route'))] == ['a']
