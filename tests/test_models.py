from datetime import datetime
from datetime import timedelta
from datetime import timezone

import pytest

from aiokube.models import ModelRegistry
from aiokube.models import ListProxy
from aiokube.models import MapProxy
from aiokube.models import model_alias


def test_full_names_and_aliases_are_the_same_class(registry):
    Deployment = registry.models.apps_v1.Deployment
    assert registry.models.io.k8s.api.apps.v1.Deployment is Deployment
    assert Deployment.__name__ == 'Deployment'
    assert Deployment.__qualname__ == 'apps_v1.Deployment'
    assert Deployment._name == 'io.k8s.api.apps.v1.Deployment'


@pytest.mark.parametrize('name, alias', [
    ('io.k8s.api.core.v1.Pod', 'core_v1.Pod'),
    ('io.k8s.api.rbac.v1.Role', 'rbac_v1.Role'),
    ('io.k8s.apimachinery.pkg.apis.meta.v1.ObjectMeta', 'meta_v1.ObjectMeta'),
    ('io.k8s.apiextensions-apiserver.pkg.apis.apiextensions.v1.JSONSchemaProps',
        'apiextensions_v1.JSONSchemaProps'),
    ('io.k8s.apimachinery.pkg.api.resource.Quantity', 'resource.Quantity'),
    ('io.k8s.apimachinery.pkg.util.intstr.IntOrString', 'intstr.IntOrString'),
    ('io.k8s.apimachinery.pkg.version.Info', 'version.Info'),
])
def test_model_alias(name, alias):
    assert model_alias(name) == alias


def test_catalog_groups(registry):
    for alias in (
            'core_v1.Pod',
            'apps_v1.StatefulSet',
            'batch_v1.CronJob',
            'rbac_v1.ClusterRoleBinding',
            'networking_v1.NetworkPolicy',
            'coordination_v1.Lease',
            'policy_v1.PodDisruptionBudget',
            'admissionregistration_v1.ValidatingAdmissionPolicy',
            'resource_v1.ResourceClaim',
            'apiextensions_v1.CustomResourceDefinition',
            'meta_v1.APIResourceList'):
        assert registry.is_model(alias), alias


def test_scalar_definitions_are_not_classes(registry):
    assert registry.models.resource.Quantity is str
    assert registry.models.meta_v1.Time is datetime
    assert registry.models.intstr.IntOrString is object
    assert registry.models.runtime.RawExtension is dict
    assert not registry.is_model('resource.Quantity')
    assert registry.is_model('core_v1.Pod')


def test_models_by_gvk(registry):
    Deployment = registry.models.apps_v1.Deployment
    assert registry.models_by_gvk['apps', 'v1', 'Deployment'] is Deployment
    assert registry.model_for('apps/v1', 'Deployment') is Deployment
    assert registry.model_for('v1', 'Pod') is registry.models.core_v1.Pod
    assert registry.model_for('example.com/v1', 'Widget') is None
    assert ('', 'v1', 'Namespace') in registry.models_by_gvk


def test_boilerplate_for_top_level_kinds(registry):
    assert registry.models.apps_v1.Deployment().to_dict() == {
        'apiVersion': 'apps/v1',
        'kind': 'Deployment',
    }
    assert registry.models.core_v1.Pod().to_dict() == {
        'apiVersion': 'v1',
        'kind': 'Pod',
    }
    assert registry.models.core_v1.Container().to_dict() == {}


def test_construct_with_local_names(registry):
    m = registry.models
    deployment = m.apps_v1.Deployment(
            metadata=m.meta_v1.ObjectMeta(name='web', labels={'app': 'web'}),
            spec={'replicas': 2})
    assert deployment.metadata.name == 'web'
    assert deployment.spec.replicas == 2
    assert deployment.api_version == 'apps/v1'
    assert deployment.to_dict()['metadata'] == {'name': 'web', 'labels': {'app': 'web'}}


def test_unknown_keyword_raises(registry):
    with pytest.raises(TypeError):
        registry.models.core_v1.Pod(metdata={})


def test_absent_none_and_delete(registry):
    meta = registry.models.meta_v1.ObjectMeta(name='a', namespace='b')
    assert meta.uid is None
    meta.name = None
    assert 'name' not in meta.to_dict()
    del meta.namespace
    assert meta.to_dict() == {}
    del meta.namespace


def test_wrong_model_type_raises(registry):
    m = registry.models
    with pytest.raises(TypeError):
        m.apps_v1.Deployment(metadata=m.core_v1.Container(name='x'))


def test_nested_views_are_live(registry):
    pod = registry.models.core_v1.Pod.from_dict({
        'metadata': {'name': 'p'},
        'spec': {'containers': [{'name': 'app', 'image': 'nginx'}]},
    })
    pod.spec.containers[0].image = 'nginx:1.27'
    pod.metadata.labels = {'tier': 'web'}
    pod.metadata.labels['env'] = 'prod'
    assert pod.to_dict()['spec']['containers'][0]['image'] == 'nginx:1.27'
    assert pod.to_dict()['metadata']['labels'] == {'tier': 'web', 'env': 'prod'}


def test_list_fields(registry):
    m = registry.models
    spec = m.core_v1.PodSpec(containers=[{'name': 'a'}])
    containers = spec.containers
    assert isinstance(containers, ListProxy)
    containers.append(m.core_v1.Container(name='b'))
    containers += [{'name': 'c'}]
    assert [ c.name for c in containers ] == ['a', 'b', 'c']
    assert [ c.name for c in reversed(containers) ] == ['c', 'b', 'a']
    assert m.core_v1.Container(name='b') in containers
    assert containers.index(m.core_v1.Container(name='c')) == 2
    popped = containers.pop(0)
    assert popped == m.core_v1.Container(name='a')
    assert spec.to_dict() == {'containers': [{'name': 'b'}, {'name': 'c'}]}
    with pytest.raises(TypeError):
        spec.containers = 'nope'


def test_map_fields_project_values(registry):
    m = registry.models
    requirements = m.core_v1.ResourceRequirements(limits={'cpu': '500m'})
    assert isinstance(requirements.limits, MapProxy)
    assert requirements.limits == {'cpu': '500m'}
    requirements.limits['memory'] = '1Gi'
    assert requirements.to_dict() == {'limits': {'cpu': '500m', 'memory': '1Gi'}}


def test_date_time_fields(registry):
    meta = registry.models.meta_v1.ObjectMeta.from_dict(
            {'creationTimestamp': '2024-01-02T03:04:05Z'})
    assert meta.creation_timestamp == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    local = timezone(timedelta(hours=2))
    meta.creation_timestamp = datetime(2024, 1, 2, 5, 4, 5, 120000, tzinfo=local)
    assert meta.to_dict() == {'creationTimestamp': '2024-01-02T03:04:05.120000Z'}

    meta.creation_timestamp = '2024-05-06T07:08:09+00:00'
    assert meta.creation_timestamp.month == 5

    meta.deletion_timestamp = datetime(2024, 1, 1)
    assert meta.to_dict()['deletionTimestamp'] == '2024-01-01T00:00:00Z'

    with pytest.raises(TypeError):
        meta.creation_timestamp = 12


def test_unparseable_time_is_returned_raw(registry):
    meta = registry.models.meta_v1.ObjectMeta.from_dict({'creationTimestamp': 'yesterday'})
    assert meta.creation_timestamp == 'yesterday'


def test_unknown_wire_keys_survive(registry):
    data = {
        'apiVersion': 'v1',
        'kind': 'Pod',
        'metadata': {'name': 'p', 'futureField': {'x': 1}},
        'extra': [1, 2, 3],
    }
    pod = registry.models.core_v1.Pod.from_json(
            registry.models.core_v1.Pod.from_dict(data).to_json())
    assert pod.to_dict() == data


def test_from_dict_copies(registry):
    data = {'metadata': {'name': 'p'}}
    pod = registry.models.core_v1.Pod.from_dict(data)
    pod.metadata.name = 'q'
    assert data == {'metadata': {'name': 'p'}}
    out = pod.to_dict()
    out['metadata']['name'] = 'r'
    assert pod.metadata.name == 'q'


def test_keyword_and_dollar_fields(registry):
    m = registry.models
    rule = m.networking_v1.NetworkPolicyIngressRule(
            from_=[{'ipBlock': {'cidr': '10.0.0.0/8', 'except': ['10.1.0.0/16']}}])
    assert rule.from_[0].ip_block.except_ == ['10.1.0.0/16']
    assert 'from' in rule.to_dict()

    props = m.apiextensions_v1.JSONSchemaProps(ref_='#/definitions/x', not_={'type': 'string'})
    assert props.to_dict() == {'$ref': '#/definitions/x', 'not': {'type': 'string'}}
    assert props.not_.type == 'string'


def test_recursive_schema(registry):
    Props = registry.models.apiextensions_v1.JSONSchemaProps
    schema = Props.from_dict({
        'type': 'object',
        'properties': {
            'spec': {'type': 'object', 'properties': {'size': {'type': 'integer'}}},
        },
    })
    assert schema.properties['spec'].properties['size'].type == 'integer'
    assert isinstance(schema.properties['spec'], Props)


def test_pod_ips_local_name(registry):
    status = registry.models.core_v1.PodStatus(pod_i_ps=[{'ip': '10.0.0.1'}], pod_ip='10.0.0.1')
    assert status.to_dict() == {'podIPs': [{'ip': '10.0.0.1'}], 'podIP': '10.0.0.1'}


def test_equality_and_hash(registry):
    Container = registry.models.core_v1.Container
    assert Container(name='a') == Container(name='a')
    assert Container(name='a') != Container(name='b')
    assert Container(name='a') != registry.models.core_v1.EnvVar(name='a')
    with pytest.raises(TypeError):
        hash(Container(name='a'))


def test_repr_uses_local_names(registry):
    ref = registry.models.meta_v1.OwnerReference(api_version='v1', kind='Pod', name='p')
    assert repr(ref) == "OwnerReference(api_version='v1', kind='Pod', name='p')"


def test_docstring_and_fields(registry):
    Pod = registry.models.core_v1.Pod
    assert Pod._fields['api_version'] == 'apiVersion'
    assert 'api_version (apiVersion)' in Pod.__doc__
    assert Pod.metadata.__doc__


def test_yaml_round_trip(registry):
    ConfigMap = registry.models.core_v1.ConfigMap
    cm = ConfigMap(metadata={'name': 'settings'}, data={'a': '1'})
    assert cm.to_yaml() == (
            'apiVersion: v1\n'
            'kind: ConfigMap\n'
            'metadata:\n'
            '  name: settings\n'
            'data:\n'
            "  a: '1'\n")
    assert ConfigMap.from_yaml(cm.to_yaml()) == cm


def test_duplicate_definitions():
    registry = ModelRegistry()
    desc = {'type': 'object', 'properties': {'name': {'type': 'string'}}}
    registry.add_model_desc('io.example.v1.Thing', desc)
    registry.add_model_desc('io.example.v1.Thing', dict(desc))
    with pytest.raises(KeyError):
        registry.add_model_desc('io.example.v1.Thing', {'type': 'object', 'properties': {}})


def test_colliding_local_names():
    registry = ModelRegistry()
    registry.add_model_desc('io.example.v1.Odd', {
        'type': 'object',
        'properties': {
            'podIP': {'type': 'string'},
            'pod_ip': {'type': 'string'},
        },
    })
    with pytest.raises(ValueError):
        registry.models['io.example.v1.Odd']


def test_spec_without_release():
    registry = ModelRegistry()
    registry.add_spec({'definitions': {
        'io.example.widgets.v1.Widget': {
            'type': 'object',
            'properties': {
                'apiVersion': {'type': 'string'},
                'kind': {'type': 'string'},
                'size': {'type': 'integer'},
            },
            'x-kubernetes-group-version-kind': [
                {'group': 'widgets.example.io', 'version': 'v1', 'kind': 'Widget'},
            ],
        },
    }})
    Widget = registry.models.v1.Widget
    assert Widget(size=3).to_dict() == {
        'apiVersion': 'widgets.example.io/v1',
        'kind': 'Widget',
        'size': 3,
    }
