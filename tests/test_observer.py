from promkit.observer import ExemplarObserver, Observer, ObserverFunc


class _Recorder:
    def __init__(self):
        self.seen = []

    def observe_with_exemplar(self, value, labels):
        self.seen.append((value, labels))


def test_observer_func_forwards_values():
    received = []
    observer = ObserverFunc(received.append)
    observer.observe(1.5)
    observer.observe(-2.0)
    assert received == [1.5, -2.0]


def test_observer_func_satisfies_observer_and_works_through_it():
    received = []
    observer = ObserverFunc(received.append)
    assert isinstance(observer, Observer)
    assert not isinstance(observer, ExemplarObserver)

    def feed(obs: Observer, values):
        for v in values:
            obs.observe(v)

    feed(observer, [0.25, 0.5])
    assert received == [0.25, 0.5]


def test_exemplar_observer_protocol_matches_implementations():
    recorder = _Recorder()
    assert isinstance(recorder, ExemplarObserver)
    observer = ObserverFunc(lambda v: recorder.observe_with_exemplar(v, {"id": "3"}))
    observer.observe(4.0)
    assert recorder.seen == [(4.0, {"id": "3"})]